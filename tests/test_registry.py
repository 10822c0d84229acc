from urllib.parse import unquote

import pytest

from errors import NotFoundError, ValidationError
from models import Organization
from registry import (add_unique, get_organization, get_reviewer,
                      invite_message, list_organizations, list_submissions,
                      manager_stats, register_organization, save_reviewer,
                      update_organization, whatsapp_share_url)
from store import ORGANIZATIONS, SUBMISSIONS, TECHNICAL_REVIEWERS
from tests.conftest import make_submission


def test_register_organization(store, org_form):
    org = register_organization(store, org_form)
    assert org.id
    assert org.access_code.startswith("#EMP ")
    assert org.sectors == ["Logística", "Administrativo"]
    assert org.password == "s3nha"
    assert get_organization(store, org.id) == org


@pytest.mark.parametrize(
    "changes",
    [
        {"confirm_password": "outra"},
        {"password": "", "confirm_password": ""},
        {"name": "   "},
        {"employee_count": -3},
        {"employee_count": "muitos"},
    ],
)
def test_register_validation_happens_before_any_write(store, org_form, changes):
    org_form.update(changes)
    with pytest.raises(ValidationError):
        register_organization(store, org_form)
    assert store.query(ORGANIZATIONS) == []


def test_update_keeps_code_password_and_creation_time(store, org, org_form):
    form = dict(org_form, name="Transportes Lentos", sectors=["Frota"], employee_count="20")
    updated = update_organization(store, org, form)
    stored = get_organization(store, org.id)
    assert stored == updated
    assert stored.name == "Transportes Lentos"
    assert stored.employee_count == 20
    assert stored.sectors == ["Frota"]
    assert (stored.access_code, stored.password, stored.created_at) == (
        org.access_code,
        org.password,
        org.created_at,
    )


def test_get_organization_missing(store):
    with pytest.raises(NotFoundError):
        get_organization(store, "nope")
    with pytest.raises(NotFoundError):
        get_organization(store, None)


def test_list_organizations_sorted(store, org_form):
    register_organization(store, dict(org_form, name="beta"))
    register_organization(store, dict(org_form, name="Alfa"))
    assert [o.name for o in list_organizations(store)] == ["Alfa", "beta"]


def test_add_unique():
    assert add_unique(["A"], "  B ") == ["A", "B"]
    assert add_unique(["A"], "A") == ["A"]
    assert add_unique(["A"], "   ") == ["A"]
    assert add_unique(None, "A") == ["A"]


def test_manager_stats():
    org = Organization(
        name="X",
        access_code="#EMP AAAAAA",
        created_at=0,
        employee_count=8,
        sectors=["Logística", "Administrativo"],
    )
    subs = [make_submission({"P1": 1}) for _ in range(3)]
    stats = manager_stats(org, subs)
    assert stats["total"] == 3
    assert stats["participation"] == 38
    assert stats["by_sector"] == {"Logística": 3, "Administrativo": 0}
    assert stats["sector_share"] == {"Logística": 100, "Administrativo": 0}


def test_manager_stats_without_employees_or_submissions():
    org = Organization(name="X", access_code="#EMP AAAAAA", created_at=0, sectors=["A"])
    stats = manager_stats(org, [])
    assert stats["participation"] == 0
    assert stats["sector_share"] == {"A": 0}


def test_invite_message_carries_access_code(org):
    msg = invite_message(org, "https://axion.example")
    assert org.access_code in msg
    assert "https://axion.example" in msg
    url = whatsapp_share_url(org, "https://axion.example")
    assert url.startswith("https://wa.me/?text=")
    assert unquote(url.split("text=", 1)[1]) == msg


def test_list_submissions_filters_by_organization(store, org):
    store.create(SUBMISSIONS, make_submission({"P1": 2}, org_id=org.id).model_dump(exclude={"id"}))
    store.create(SUBMISSIONS, make_submission({"P1": 2}, org_id="other").model_dump(exclude={"id"}))
    subs = list_submissions(store, org.id)
    assert len(subs) == 1
    assert subs[0].organization_id == org.id


def test_reviewer_profile_is_created_then_updated(store):
    assert get_reviewer(store) is None
    first = save_reviewer(store, "Ana Souza", "CRP 06/12345")
    second = save_reviewer(store, "Ana S. Souza", "CRP 06/12345", existing=first)
    assert second.id == first.id
    assert len(store.query(TECHNICAL_REVIEWERS)) == 1
    assert get_reviewer(store).name == "Ana S. Souza"
    with pytest.raises(ValidationError):
        save_reviewer(store, "", "x")


def test_percentages_round_half_up():
    org = Organization(
        name="X",
        access_code="#EMP AAAAAA",
        created_at=0,
        employee_count=8,
        sectors=["Logística", "Administrativo"],
    )
    stats = manager_stats(org, [make_submission({"P1": 1})])
    assert stats["participation"] == 13

    subs = [make_submission({"P1": 1}, sector="Administrativo")]
    subs += [make_submission({"P1": 1}) for _ in range(7)]
    stats = manager_stats(org, subs)
    assert stats["participation"] == 100
    assert stats["sector_share"] == {"Logística": 88, "Administrativo": 13}
