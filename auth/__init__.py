# Bearer tokens are issued and verified locally; routes declare their role through authorize()
from .guard import authorize, has_role
from .tokens import create_token, decode_token, hash_password, verify_password
