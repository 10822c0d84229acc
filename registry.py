# registry.py
"""Organizations, the technical-reviewer profile and manager dashboard figures."""
import time
from urllib.parse import quote

from access import generate_access_code
from errors import NotFoundError, StoreError, ValidationError
from logger import get_logger
from models import AssessmentSubmission, Organization, TechnicalReviewer
from scoring import round_half_up
from store import ORGANIZATIONS, SUBMISSIONS, TECHNICAL_REVIEWERS

log = get_logger("registry")


def _now_ms():
    return int(time.time() * 1000)


def add_unique(items, value):
    """Return ``items`` plus the trimmed ``value`` when it is new and non-empty."""
    value = (value or "").strip()
    items = list(items or [])
    if value and value not in items:
        items.append(value)
    return items


def _employee_count(raw):
    if raw in (None, ""):
        return 0
    try:
        n = int(raw)
    except (TypeError, ValueError):
        raise ValidationError("Quantidade de colaboradores inválida.")
    if n < 0:
        raise ValidationError("Quantidade de colaboradores inválida.")
    return n


def _profile_fields(form):
    name = (form.get("name") or "").strip()
    if not name:
        raise ValidationError("Informe o nome da empresa.")
    return {
        "name": name,
        "cnpj": (form.get("cnpj") or "").strip(),
        "employee_count": _employee_count(form.get("employee_count")),
        "sectors": [s for s in (form.get("sectors") or []) if s],
        "functions": [f for f in (form.get("functions") or []) if f],
    }


def register_organization(store, form):
    """
    Validate the registration form, create the organization and read it back.

    Args:
        store (Store): document store
        form (dict): name, cnpj, employee_count, sectors, functions,
            password, confirm_password

    Returns:
        Organization: the stored organization, with its new access code
    """
    fields = _profile_fields(form)
    password = form.get("password") or ""
    if not password:
        raise ValidationError("Informe uma senha.")
    if password != (form.get("confirm_password") or ""):
        raise ValidationError("As senhas não coincidem!")

    fields.update(
        password=password,
        access_code=generate_access_code(),
        created_at=_now_ms(),
    )
    doc_id = store.create(ORGANIZATIONS, fields)
    doc = store.get(ORGANIZATIONS, doc_id)
    if doc is None:
        raise StoreError("Empresa criada, mas não foi possível recuperá-la.")
    log.info("Registered organization %s (%s)", doc_id, fields["access_code"])
    return Organization(**doc)


def update_organization(store, organization, form):
    """Edit the profile fields; access code, password and creation time stay."""
    fields = _profile_fields(form)
    store.update(ORGANIZATIONS, organization.id, fields)
    return organization.model_copy(update=fields)


def get_organization(store, org_id):
    doc = store.get(ORGANIZATIONS, org_id) if org_id else None
    if doc is None:
        raise NotFoundError("Empresa não encontrada.")
    return Organization(**doc)


def list_organizations(store):
    orgs = [Organization(**d) for d in store.query(ORGANIZATIONS)]
    return sorted(orgs, key=lambda o: o.name.lower())


def list_submissions(store, organization_id):
    return [
        AssessmentSubmission(**d)
        for d in store.query(SUBMISSIONS, {"organization_id": organization_id})
    ]


def manager_stats(organization, submissions):
    """
    Participation figures for the manager panel.

    Returns:
        dict: total, participation (% of employee_count), by_sector
            (sector -> count) and sector_share (sector -> % of total), with
            every registered sector present.
    """
    total = len(submissions)
    by_sector = {s: 0 for s in organization.sectors}
    for sub in submissions:
        sector = sub["sector"] if isinstance(sub, dict) else sub.sector
        by_sector[sector] = by_sector.get(sector, 0) + 1
    participation = (
        round_half_up(100 * total, organization.employee_count)
        if organization.employee_count > 0
        else 0
    )
    share = {s: (round_half_up(100 * n, total) if total else 0) for s, n in by_sector.items()}
    return {
        "total": total,
        "participation": participation,
        "by_sector": by_sector,
        "sector_share": share,
    }


def invite_message(organization, app_url):
    return (
        f"Olá equipe {organization.name}!\n\n"
        "Acesse o link abaixo e participe da Avaliação de Riscos Psicossociais "
        "da NR-1. Assim você contribui para o bem-estar da nossa empresa.\n\n"
        "Sua participação é essencial!\n\n"
        f"Link de Acesso: {app_url}\n\n"
        f"Use esse código para acessar a Avaliação: {organization.access_code}"
    )


def whatsapp_share_url(organization, app_url):
    return "https://wa.me/?text=" + quote(invite_message(organization, app_url), safe="")


# --- Technical reviewer -----------------------------------------------------
def get_reviewer(store):
    docs = store.query(TECHNICAL_REVIEWERS)
    return TechnicalReviewer(**docs[0]) if docs else None


def save_reviewer(store, name, registration_number, existing=None):
    name = (name or "").strip()
    registration_number = (registration_number or "").strip()
    if not name or not registration_number:
        raise ValidationError("Informe nome e registro profissional.")
    fields = {
        "name": name,
        "registration_number": registration_number,
        "updated_at": _now_ms(),
    }
    if existing is not None and existing.id:
        store.update(TECHNICAL_REVIEWERS, existing.id, fields)
        doc_id = existing.id
    else:
        doc_id = store.create(TECHNICAL_REVIEWERS, fields)
    return TechnicalReviewer(id=doc_id, **fields)
