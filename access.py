# access.py
"""
Access codes and the three entry points (manager, collaborator, reviewer).

This is a shared-secret scheme with no tokens or expiry; it only decides
which screen a browser may open.
"""
import hmac
import secrets

from config import ACCESS_CODE_ALPHABET, ACCESS_CODE_LENGTH, ACCESS_CODE_PREFIX
from errors import AlreadyRespondedError, AuthenticationError, NotFoundError
from logger import get_logger
from models import Organization
from store import ORGANIZATIONS

log = get_logger("access")


def generate_access_code():
    body = "".join(secrets.choice(ACCESS_CODE_ALPHABET) for _ in range(ACCESS_CODE_LENGTH))
    return f"{ACCESS_CODE_PREFIX}{body}"


def normalize_access_code(raw):
    """
    Upper-case and trim a typed code. A bare 6-character code gets the
    ``#EMP`` prefix so both ``abc123`` and ``#emp abc123`` find the same
    organization.
    """
    code = (raw or "").strip().upper()
    if len(code) == ACCESS_CODE_LENGTH and code.isalnum():
        code = ACCESS_CODE_PREFIX + code
    return code


def find_by_code(store, code):
    docs = store.query(ORGANIZATIONS, {"access_code": code})
    if not docs:
        return None
    return Organization(**docs[0])


def login_manager(store, raw_code, password):
    code = normalize_access_code(raw_code)
    org = find_by_code(store, code)
    if org is None:
        raise NotFoundError("Código de acesso não encontrado.")
    if org.password != password:
        log.info("Rejected manager login for %s", code)
        raise AuthenticationError("Senha incorreta.")
    return org


def open_survey(store, raw_code, session):
    """
    Resolve the organization a collaborator is about to answer for.

    The re-submission gate is checked before the store is queried.
    """
    code = normalize_access_code(raw_code)
    if not session.can_start(code):
        raise AlreadyRespondedError()
    org = find_by_code(store, code)
    if org is None:
        raise NotFoundError("Código da empresa não encontrado.")
    return org


def login_reviewer(secret, settings):
    if not hmac.compare_digest((secret or "").encode(), settings.REVIEWER_SECRET.encode()):
        raise AuthenticationError("Senha Master incorreta.")
    return True
