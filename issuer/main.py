# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

# Run from the repository root with `python -m issuer.main`
import os

import uvicorn

from issuer.issuer import app

if __name__ == '__main__':
    # HTTP
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
    # HTTPS
    # uvicorn.run(app, host="0.0.0.0", port=443, ssl_keyfile="cert/private.pem", ssl_certfile="cert/public.pem")
