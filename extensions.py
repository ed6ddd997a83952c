from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

# Rate Limiting: storage 與開關由 config 的 RATELIMIT_* 決定
limiter = Limiter(key_func=get_remote_address)
