# v1-endpoint-deps.py
# Description: This file is to serve as a sink for dependencies across the v1 endpoints.
# Imports
#
# 3rd-party Libraries
from fastapi.security import OAuth2PasswordBearer
from slowapi import Limiter
from slowapi.util import get_remote_address
#
# Local Imports
from pkm_Server_API.app.core.config import settings
#
#######################################################################################################################
#
# Static Variables
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login", auto_error=False)

# Shared rate limiter; main.py registers it on app.state together with its exception handler
limiter = Limiter(key_func=get_remote_address, enabled=settings["RATE_LIMIT_ENABLED"])

#
# End of v1-endpoint-deps.py
#######################################################################################################################
