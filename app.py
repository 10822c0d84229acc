# app.py

import dash
import dash_daq as daq
from dash import ALL, Input, Output, State, ctx, dcc, html, no_update

from access import login_manager, login_reviewer, open_survey
from charts import (distribution_pie_figure, domain_bar_figure,
                    participation_figure, radar_figure, sector_heatmap_figure)
from collector import ResponseCollector, RespondentSession, submit
from config import APP_TITLE, DOMAINS, QUESTIONS, RESPONSE_OPTIONS
from errors import AxionError, StoreError
from exports import (check_report_inputs, export_filename, submissions_csv,
                     write_pdf_bytes, write_pptx_bytes)
from live import LiveRegistry, live_key
from logger import get_logger
from models import AssessmentSubmission, Organization, TechnicalReviewer
from registry import (add_unique, get_organization, invite_message,
                      manager_stats, register_organization, save_reviewer,
                      update_organization, whatsapp_share_url)
from scoring import (classification_distribution, compute_domain_results,
                     sector_domain_matrix)
from settings import SETTINGS
from store import ORGANIZATIONS, SUBMISSIONS, TECHNICAL_REVIEWERS, get_store

log = get_logger("app")

app = dash.Dash(__name__, suppress_callback_exceptions=True)
app.title = APP_TITLE
server = app.server

STORE = get_store(SETTINGS)
LIVE = LiveRegistry()


def _validate_config() -> None:
    """
    Check the sanity of the question bank in `config.py`.

    Logs warnings if questions have unknown domains or a non-boolean
    `inverted` flag.
    """
    bad_domains = [
        i + 1 for i, q in enumerate(QUESTIONS) if q["domain"] not in DOMAINS
    ]  # unknown domains
    bad_flags = [
        i + 1 for i, q in enumerate(QUESTIONS) if not isinstance(q.get("inverted"), bool)
    ]  # missing/odd polarity

    if bad_domains:
        log.warning("Questions with unknown domain: %s", [f"P{n}" for n in bad_domains])
    if bad_flags:
        log.warning("Questions without a boolean 'inverted' flag: %s", [f"P{n}" for n in bad_flags])


_validate_config()


# ----------- Navigation state -------------
def _default_nav():
    return {
        "view": "home",
        "org_id": None,
        "reviewer": False,
        "selected_org": None,
        "report": False,
        "live": [],
    }


def _live_queries(nav):
    """Live queries a view keeps open while it is on screen."""
    if nav["view"] == "manager" and nav["org_id"]:
        return [(SUBMISSIONS, {"organization_id": nav["org_id"]})]
    if nav["view"] == "tech" and nav["reviewer"]:
        queries = [(ORGANIZATIONS, None), (TECHNICAL_REVIEWERS, None)]
        if nav["selected_org"]:
            queries.append((SUBMISSIONS, {"organization_id": nav["selected_org"]}))
        return queries
    return []


def _goto(nav, view, **changes):
    """
    Return the navigation state for ``view``, releasing the live queries of
    the view being left and opening the ones the new view needs.
    """
    nav = dict(_default_nav(), **(nav or {}))
    previous = nav["live"]
    nav.update(changes)
    nav["view"] = view
    nav["live"] = []
    # open the new queries first so ones shared with the old view stay alive
    for collection, filters in _live_queries(nav):
        try:
            key, _ = LIVE.acquire(STORE, collection, filters)
        except AxionError as exc:
            log.error("Live query on %s unavailable: %s", collection, exc.message)
            continue
        nav["live"].append(key)
    for key in previous:
        LIVE.release(key)
    return nav


def _docs(nav, collection, filters=None):
    key = live_key(collection, filters)
    query = LIVE.get(key) if key in (nav or {}).get("live", []) else None
    if query is not None:
        return query.snapshot()
    return STORE.query(collection, filters)


def _live_signature(nav):
    sig = []
    for key in (nav or {}).get("live", []):
        query = LIVE.get(key)
        sig.append(query.version if query is not None else -1)
    return sig


def _notice(text, kind="success"):
    return {"text": text, "type": kind}


def _error_notice(exc):
    if isinstance(exc, StoreError):
        log.error("Store error: %s", exc.message)
        return _notice("Erro de comunicação. Tente novamente.", "error")
    return _notice(exc.message, "error")


def _clicked():
    """True when the callback was triggered by an actual click/submit."""
    return bool(ctx.triggered and ctx.triggered[0].get("value"))


def _restore_collector(data):
    """Collector from collector-store; a tampered or stale state starts over."""
    try:
        return ResponseCollector.from_dict(data)
    except AxionError as exc:
        log.warning("Discarding collector state: %s", exc.message)
        return ResponseCollector()


# -------------- Layout pieces --------------------
def _field(label, component):
    return html.Div([html.Label(label), component], className="field")


def _nav_button(label, target, className="secondary"):
    return html.Button(label, id={"type": "nav", "target": target}, n_clicks=0, className=className)


def home_view():
    cards = [
        ("collaborator-login", "COLABORADOR", "Acesse para realizar sua avaliação de risco psicossocial."),
        ("manager-login", "GESTOR", "Gerencie sua empresa, setores e acompanhe o progresso."),
        ("tech-login", "RESPONSÁVEL TÉCNICO", "Análise detalhada de dados e emissão de relatórios técnicos."),
        ("register", "REGISTRAR EMPRESA", "Cadastre uma nova organização no sistema."),
    ]
    return html.Div(
        [
            html.P(
                "Plataforma de Análise de Riscos Psicossociais conforme a NR-1.",
                className="lead",
            ),
            html.Div(
                [
                    html.Button(
                        [html.H3(label), html.P(desc)],
                        id={"type": "nav", "target": target},
                        n_clicks=0,
                        className=f"home-card card-{target}",
                    )
                    for target, label, desc in cards
                ],
                className="home-grid",
            ),
        ],
        className="view home",
    )


def _chips(items, kind):
    return [
        html.Span(
            [
                item,
                html.Button("×", id={"type": "chip-remove", "kind": kind, "index": i}, n_clicks=0, className="chip-x"),
            ],
            className="chip",
        )
        for i, item in enumerate(items)
    ]


def register_view(org=None):
    editing = org is not None
    children = [
        html.H2("Editar Empresa" if editing else "Registrar Empresa"),
        _field("Nome da empresa", dcc.Input(id="reg-name", value=org.name if editing else "", className="textin")),
        _field("CNPJ", dcc.Input(id="reg-cnpj", value=org.cnpj if editing else "", placeholder="00.000.000/0000-00", className="textin")),
        _field(
            "Quantidade de colaboradores",
            dcc.Input(id="reg-employees", type="number", min=0, value=org.employee_count if editing else None, className="textin"),
        ),
        _field(
            "Setores",
            html.Div(
                [
                    dcc.Input(id="sector-input", placeholder="Digite o nome do setor e aperte Enter", className="textin", debounce=False),
                    html.Div(_chips(org.sectors if editing else [], "sectors"), id="sector-chips", className="chips"),
                ]
            ),
        ),
        _field(
            "Funções",
            html.Div(
                [
                    dcc.Input(id="function-input", placeholder="Digite o nome da função e aperte Enter", className="textin", debounce=False),
                    html.Div(_chips(org.functions if editing else [], "functions"), id="function-chips", className="chips"),
                ]
            ),
        ),
    ]
    if not editing:
        children += [
            _field("Senha", dcc.Input(id="reg-password", type="password", className="textin")),
            _field("Confirmar senha", dcc.Input(id="reg-confirm", type="password", className="textin")),
        ]
    else:
        # keep the ids present so the save callback's States resolve
        children += [dcc.Input(id="reg-password", type="hidden"), dcc.Input(id="reg-confirm", type="hidden")]
    children += [
        html.Button(
            "SALVAR ALTERAÇÕES" if editing else "SALVAR INFORMAÇÕES",
            id="reg-save",
            n_clicks=0,
            className="primary",
        ),
        _nav_button("Voltar", "manager" if editing else "home"),
    ]
    return html.Div(children, className="view form")


def manager_login_view():
    return html.Div(
        [
            html.H2("Acesso do Gestor"),
            _field("Código de acesso", dcc.Input(id="mgr-code", placeholder="#EMP XXXXXX", className="textin")),
            _field("Senha", dcc.Input(id="mgr-password", type="password", className="textin")),
            html.Button("ACESSAR PAINEL", id="mgr-login", n_clicks=0, className="primary"),
            _nav_button("Voltar para Início", "home"),
        ],
        className="view form",
    )


def _manager_stats_children(org, submissions, theme):
    stats = manager_stats(org, submissions)
    return [
        html.Div(
            [
                html.Div(
                    [html.Div("Respostas", className="kpi-title"), html.Div(str(stats["total"]), className="kpi-value")],
                    className="kpi",
                ),
                html.Div(
                    [html.Div("Adesão", className="kpi-title"), html.Div(f"{stats['participation']}%", className="kpi-value")],
                    className="kpi",
                ),
                html.Div(
                    [html.Div("Colaboradores", className="kpi-title"), html.Div(str(org.employee_count), className="kpi-value")],
                    className="kpi",
                ),
            ],
            className="kpis",
        ),
        html.H3("Adesão por setor"),
        dcc.Graph(
            figure=participation_figure(stats, theme),
            config={"responsive": False, "displaylogo": False, "scrollZoom": False},
        )
        if stats["by_sector"]
        else html.P("Nenhum setor cadastrado.", className="muted"),
    ]


def manager_view(org, nav, theme):
    submissions = _docs(nav, SUBMISSIONS, {"organization_id": org.id})
    return html.Div(
        [
            html.H2(org.name),
            html.Div(f"Código de acesso: {org.access_code}", className="access-code"),
            html.Div(
                [
                    html.A(
                        "CONVIDAR COLABORADORES",
                        href=whatsapp_share_url(org, SETTINGS.APP_URL),
                        target="_blank",
                        className="primary",
                    ),
                    html.Button("MODO QUIOSQUE", id="kiosk-on", n_clicks=0, className="secondary"),
                    _nav_button("EDITAR EMPRESA", "edit"),
                    _nav_button("SAIR", "home"),
                ],
                className="actions-row",
            ),
            html.Pre(invite_message(org, SETTINGS.APP_URL), className="invite"),
            html.Div(_manager_stats_children(org, submissions, theme), id="manager-stats"),
            dcc.Interval(id="manager-tick", interval=SETTINGS.LIVE_REFRESH_MS),
            dcc.Store(id="manager-seen"),
        ],
        className="view manager",
    )


def collaborator_login_view():
    return html.Div(
        [
            html.H2("Avaliação do Colaborador"),
            _field("Código da empresa", dcc.Input(id="collab-code", placeholder="#EMP XXXXXX", className="textin")),
            html.Button("INICIAR AVALIAÇÃO", id="collab-start", n_clicks=0, className="primary"),
            _nav_button("Voltar para Início", "home"),
        ],
        className="view form",
    )


def _identification_body(org, collector):
    return [
        html.H2(org.name),
        html.P("Selecione seu setor e sua função para iniciar."),
        _field(
            "Setor",
            dcc.Dropdown(id="ident-sector", options=org.sectors, value=collector.sector or None, clearable=False),
        ),
        _field(
            "Função",
            dcc.Dropdown(id="ident-function", options=org.functions, value=collector.function or None, clearable=False),
        ),
        html.Button("INICIAR PERGUNTAS", id="ident-start", n_clicks=0, className="primary"),
    ]


def _question_body(collector):
    n = len(collector.questions)
    q = collector.current_question
    current = collector.current_answer()
    return [
        html.Div(
            [
                html.Button("Voltar", id="survey-back", n_clicks=0, className="link"),
                html.Span(f"Pergunta {collector.index + 1} de {n}", className="counter"),
            ],
            className="survey-head",
        ),
        html.Div(html.Div(className="progress-fill", style={"width": f"{collector.progress() * 100:.0f}%"}), className="progress"),
        html.Div(q["text"], className="qtext"),
        html.Fieldset(
            [
                html.Button(
                    opt["label"],
                    id={"type": "answer", "value": opt["value"]},
                    n_clicks=0,
                    className="answer selected" if current == opt["value"] else "answer",
                )
                for opt in RESPONSE_OPTIONS
            ],
            id="survey-answers",
            className="answers",
        ),
        html.Div(id="survey-busy", className="muted"),
    ]


def _complete_body(org, session):
    kiosk = session.is_kiosk(org.access_code)
    children = [
        html.H2("Avaliação concluída!"),
        html.P("Obrigado pela sua participação."),
    ]
    if kiosk:
        children += [
            html.Button("NOVA AVALIAÇÃO", id="survey-again", n_clicks=0, className="primary"),
            html.Button("Sair do Modo Quiosque", id="kiosk-off", n_clicks=0, className="link"),
        ]
    else:
        children.append(_nav_button("VOLTAR AO INÍCIO", "home", className="primary"))
    return children


def survey_body(org, collector, session):
    if collector.is_complete:
        return _complete_body(org, session)
    if collector.current_question is None:
        return _identification_body(org, collector)
    return _question_body(collector)


def collaborator_view(org, collector, session):
    return html.Div(
        html.Div(survey_body(org, collector, session), id="survey-body"),
        className="view survey",
    )


def tech_login_view():
    return html.Div(
        [
            html.H2("Responsável Técnico"),
            _field("Senha Master", dcc.Input(id="tech-secret", type="password", className="textin")),
            html.Button("ACESSAR PAINEL", id="tech-login", n_clicks=0, className="primary"),
            _nav_button("Voltar para Início", "home"),
        ],
        className="view form",
    )


def _reviewer_of(nav):
    docs = _docs(nav, TECHNICAL_REVIEWERS)
    return TechnicalReviewer(**docs[0]) if docs else None


def _org_list(nav):
    orgs = [Organization(**d) for d in _docs(nav, ORGANIZATIONS)]
    orgs.sort(key=lambda o: o.name.lower())
    return [
        html.Button(
            [html.Div(o.name, className="org-name"), html.Div(o.cnpj, className="org-cnpj")],
            id={"type": "org-select", "id": o.id},
            n_clicks=0,
            className="org-item selected" if o.id == nav["selected_org"] else "org-item",
        )
        for o in orgs
    ]


def _reviewer_label(reviewer):
    if reviewer is None:
        return "Nenhum responsável cadastrado"
    return f"Responsável: {reviewer.name} ({reviewer.registration_number})"


def _report_children(nav, theme):
    if not nav["selected_org"]:
        return html.P("Selecione uma empresa para visualizar os dados.", className="muted")
    try:
        org = get_organization(STORE, nav["selected_org"])
    except AxionError as exc:
        return html.P(exc.message, className="muted")
    submissions = [
        AssessmentSubmission(**d)
        for d in _docs(nav, SUBMISSIONS, {"organization_id": org.id})
    ]
    header = [
        html.H2(org.name),
        html.Div(f"CNPJ: {org.cnpj} · {len(submissions)} avaliação(ões)", className="muted"),
        html.Div(
            [
                html.Button("EXPORTAR CSV", id="dl-csv", n_clicks=0, className="secondary"),
                html.Button("GERAR RELATÓRIO", id="show-report", n_clicks=0, className="primary"),
            ]
            + (
                [
                    html.Button("EXPORTAR PDF", id="dl-pdf", n_clicks=0, className="secondary"),
                    html.Button("EXPORTAR PPTX", id="dl-ppt", n_clicks=0, className="secondary"),
                ]
                if nav["report"]
                else []
            ),
            className="export-row",
        ),
    ]
    if not nav["report"]:
        return header

    results = compute_domain_results(submissions)
    if not results:
        return header + [html.P("Nenhuma avaliação registrada.", className="muted")]
    graph_cfg = {"responsive": False, "displaylogo": False, "scrollZoom": False}
    return header + [
        html.Div(
            [
                dcc.Graph(id="chart-domains", figure=domain_bar_figure(results, theme), config=graph_cfg),
                dcc.Graph(
                    id="chart-distribution",
                    figure=distribution_pie_figure(classification_distribution(results), theme),
                    config=graph_cfg,
                ),
            ],
            className="charts",
        ),
        html.Div(
            [
                dcc.Graph(id="chart-radar", figure=radar_figure(results, theme), config=graph_cfg),
                dcc.Graph(id="chart-sectors", figure=sector_heatmap_figure(sector_domain_matrix(submissions), theme), config=graph_cfg),
            ],
            className="charts",
        ),
        html.Table(
            [
                html.Thead(html.Tr([html.Th(h) for h in ("Domínio", "Score", "Severidade", "Probabilidade", "Classificação")])),
                html.Tbody(
                    [
                        html.Tr(
                            [
                                html.Td(r.domain),
                                html.Td(str(r.score)),
                                html.Td(r.severity.label),
                                html.Td(r.probability.label),
                                html.Td(r.classification.label, style={"color": r.classification.color}),
                            ]
                        )
                        for r in results
                    ]
                ),
            ],
            className="results-table",
        ),
    ]


def tech_view(nav, theme):
    reviewer = _reviewer_of(nav)
    return html.Div(
        [
            html.Div(
                [
                    html.Div(_reviewer_label(reviewer), id="reviewer-label"),
                    html.Button("CADASTRAR RESPONSÁVEL", id="reviewer-edit", n_clicks=0, className="secondary"),
                    _nav_button("SAIR", "home"),
                ],
                className="actions-row",
            ),
            html.Div(
                [
                    _field("Nome", dcc.Input(id="reviewer-name", value=reviewer.name if reviewer else "", className="textin")),
                    _field(
                        "Registro profissional",
                        dcc.Input(id="reviewer-reg", value=reviewer.registration_number if reviewer else "", className="textin"),
                    ),
                    html.Button("SALVAR RESPONSÁVEL", id="reviewer-save", n_clicks=0, className="primary"),
                ],
                id="reviewer-form",
                className="modal",
                style={"display": "none"},
            ),
            html.Div(
                [
                    html.Div([html.H3("Empresas"), html.Div(_org_list(nav), id="org-list")], className="col sidebar"),
                    html.Div(_report_children(nav, theme), id="report-area", className="col main"),
                ],
                className="tech-grid",
            ),
            dcc.Interval(id="tech-tick", interval=SETTINGS.LIVE_REFRESH_MS),
            dcc.Store(id="tech-seen", data=_live_signature(nav)),
        ],
        className="view tech",
    )


app.layout = html.Div(
    id="page-root",
    className="page theme-light",
    children=[
        dcc.Store(id="nav-store", storage_type="session", data=_default_nav()),
        dcc.Store(id="respondent-store", storage_type="local"),
        dcc.Store(id="collector-store"),
        dcc.Store(id="draft-store"),
        dcc.Store(id="notice-store"),
        dcc.Store(id="theme-store", data="light"),
        dcc.Download(id="dl-csv-out"),
        dcc.Download(id="dl-pdf-out"),
        dcc.Download(id="dl-ppt-out"),
        # Header
        html.Div(
            [
                html.H1("AXION", className="brand"),
                html.Div(
                    [
                        html.Div(
                            [
                                html.Label("Dark mode"),
                                daq.BooleanSwitch(id="theme-switch", on=False, color="#4f46e5", className="theme-switch"),
                            ],
                            className="field",
                        ),
                        _nav_button("Sair", "home", className="link"),
                    ],
                    className="meta",
                ),
            ],
            className="header",
        ),
        html.Div(id="notice", className="notice"),
        html.Div(id="page-content"),
        html.Footer("AXION - NR-1 Análise de Riscos Psicossociais", className="footer"),
    ],
)


# -------- Callbacks ------------------
@app.callback(
    Output("page-content", "children"),
    Input("nav-store", "data"),
    State("collector-store", "data"),
    State("respondent-store", "data"),
    State("theme-store", "data"),
)
def render_page(nav, collector_data, respondent_data, theme):
    """
    Render the view named in the navigation state.

    Views that need an organization or the reviewer login fall back to the
    home view when that context is missing.
    """
    nav = dict(_default_nav(), **(nav or {}))
    view = nav["view"]
    theme = theme or "light"
    try:
        if view == "register":
            return register_view()
        if view == "edit" and nav["org_id"]:
            return register_view(get_organization(STORE, nav["org_id"]))
        if view == "manager-login":
            return manager_login_view()
        if view == "manager" and nav["org_id"]:
            return manager_view(get_organization(STORE, nav["org_id"]), nav, theme)
        if view == "collaborator-login":
            return collaborator_login_view()
        if view == "collaborator" and nav["org_id"]:
            return collaborator_view(
                get_organization(STORE, nav["org_id"]),
                _restore_collector(collector_data),
                RespondentSession.from_dict(respondent_data),
            )
        if view == "tech-login":
            return tech_login_view()
        if view == "tech" and nav["reviewer"]:
            return tech_view(nav, theme)
    except AxionError as exc:
        log.error("Cannot render %s: %s", view, exc.message)
    return home_view()


@app.callback(
    Output("nav-store", "data", allow_duplicate=True),
    Output("draft-store", "data", allow_duplicate=True),
    Output("collector-store", "data", allow_duplicate=True),
    Input({"type": "nav", "target": ALL}, "n_clicks"),
    State("nav-store", "data"),
    prevent_initial_call=True,
)
def navigate(_, nav):
    """Plain navigation buttons. Going home also forgets the logged-in context."""
    if not _clicked():
        raise dash.exceptions.PreventUpdate
    target = ctx.triggered_id["target"]
    nav = dict(_default_nav(), **(nav or {}))
    draft = no_update
    if target == "home":
        return _goto(nav, "home", org_id=None, reviewer=False, selected_org=None, report=False), None, None
    if target == "register":
        nav = _goto(nav, "register", org_id=None)
        draft = {"sectors": [], "functions": []}
    elif target == "edit" and nav["org_id"]:
        try:
            org = get_organization(STORE, nav["org_id"])
        except AxionError as exc:
            log.error("Cannot edit organization: %s", exc.message)
            raise dash.exceptions.PreventUpdate
        nav = _goto(nav, "edit")
        draft = {"sectors": org.sectors, "functions": org.functions}
    else:
        nav = _goto(nav, target)
    return nav, draft, no_update


@app.callback(
    Output("notice", "children"),
    Output("notice", "className"),
    Input("notice-store", "data"),
)
def show_notice(data):
    if not data:
        return "", "notice"
    return data["text"], f"notice notice-{data['type']}"


# --- Registration ---
def _add_to_draft(draft, kind, value):
    draft = dict(draft or {"sectors": [], "functions": []})
    draft[kind] = add_unique(draft.get(kind), value)
    return draft


@app.callback(
    Output("draft-store", "data", allow_duplicate=True),
    Output("sector-input", "value"),
    Input("sector-input", "n_submit"),
    State("sector-input", "value"),
    State("draft-store", "data"),
    prevent_initial_call=True,
)
def add_sector(_, value, draft):
    if not _clicked():
        raise dash.exceptions.PreventUpdate
    return _add_to_draft(draft, "sectors", value), ""


@app.callback(
    Output("draft-store", "data", allow_duplicate=True),
    Output("function-input", "value"),
    Input("function-input", "n_submit"),
    State("function-input", "value"),
    State("draft-store", "data"),
    prevent_initial_call=True,
)
def add_function(_, value, draft):
    if not _clicked():
        raise dash.exceptions.PreventUpdate
    return _add_to_draft(draft, "functions", value), ""


@app.callback(
    Output("draft-store", "data", allow_duplicate=True),
    Input({"type": "chip-remove", "kind": ALL, "index": ALL}, "n_clicks"),
    State("draft-store", "data"),
    prevent_initial_call=True,
)
def remove_chip(_, draft):
    if not _clicked():
        raise dash.exceptions.PreventUpdate
    kind, index = ctx.triggered_id["kind"], ctx.triggered_id["index"]
    draft = dict(draft or {})
    items = list(draft.get(kind) or [])
    if 0 <= index < len(items):
        items.pop(index)
    draft[kind] = items
    return draft


@app.callback(
    Output("sector-chips", "children"),
    Output("function-chips", "children"),
    Input("draft-store", "data"),
)
def render_chips(draft):
    draft = draft or {}
    return _chips(draft.get("sectors") or [], "sectors"), _chips(draft.get("functions") or [], "functions")


@app.callback(
    Output("nav-store", "data", allow_duplicate=True),
    Output("notice-store", "data", allow_duplicate=True),
    Input("reg-save", "n_clicks"),
    State("reg-name", "value"),
    State("reg-cnpj", "value"),
    State("reg-employees", "value"),
    State("reg-password", "value"),
    State("reg-confirm", "value"),
    State("draft-store", "data"),
    State("nav-store", "data"),
    running=[(Output("reg-save", "disabled"), True, False)],
    prevent_initial_call=True,
)
def save_organization(_, name, cnpj, employees, password, confirm, draft, nav):
    """Create a new organization, or save the edits of the logged-in manager."""
    if not _clicked():
        raise dash.exceptions.PreventUpdate
    nav = dict(_default_nav(), **(nav or {}))
    draft = draft or {}
    form = {
        "name": name,
        "cnpj": cnpj,
        "employee_count": employees,
        "sectors": draft.get("sectors") or [],
        "functions": draft.get("functions") or [],
        "password": password,
        "confirm_password": confirm,
    }
    try:
        if nav["view"] == "edit" and nav["org_id"]:
            org = update_organization(STORE, get_organization(STORE, nav["org_id"]), form)
            notice = _notice("Empresa atualizada com sucesso!")
        else:
            org = register_organization(STORE, form)
            notice = _notice(
                f"Empresa salva com sucesso! CÓDIGO DE ACESSO: {org.access_code}. "
                "Grave este código: ele dá acesso ao painel do gestor e à avaliação dos colaboradores."
            )
    except AxionError as exc:
        return no_update, _error_notice(exc)
    return _goto(nav, "manager", org_id=org.id), notice


# --- Manager ---
@app.callback(
    Output("nav-store", "data", allow_duplicate=True),
    Output("notice-store", "data", allow_duplicate=True),
    Input("mgr-login", "n_clicks"),
    State("mgr-code", "value"),
    State("mgr-password", "value"),
    State("nav-store", "data"),
    running=[(Output("mgr-login", "disabled"), True, False)],
    prevent_initial_call=True,
)
def manager_login(_, code, password, nav):
    if not _clicked():
        raise dash.exceptions.PreventUpdate
    try:
        org = login_manager(STORE, code, password)
    except AxionError as exc:
        return no_update, _error_notice(exc)
    return _goto(nav, "manager", org_id=org.id), None


@app.callback(
    Output("manager-stats", "children"),
    Output("manager-seen", "data"),
    Input("manager-tick", "n_intervals"),
    Input("theme-store", "data"),
    State("manager-seen", "data"),
    State("nav-store", "data"),
    prevent_initial_call=True,
)
def refresh_manager(_, theme, seen, nav):
    """Recompute the participation panel when the live submissions changed."""
    sig = _live_signature(nav)
    if sig == seen and ctx.triggered_id == "manager-tick":
        raise dash.exceptions.PreventUpdate
    try:
        org = get_organization(STORE, (nav or {}).get("org_id"))
        submissions = _docs(nav, SUBMISSIONS, {"organization_id": org.id})
    except AxionError as exc:
        log.error("Manager panel refresh failed: %s", exc.message)
        raise dash.exceptions.PreventUpdate
    return _manager_stats_children(org, submissions, theme or "light"), sig


@app.callback(
    Output("nav-store", "data", allow_duplicate=True),
    Output("respondent-store", "data", allow_duplicate=True),
    Output("collector-store", "data", allow_duplicate=True),
    Input("kiosk-on", "n_clicks"),
    State("nav-store", "data"),
    State("respondent-store", "data"),
    prevent_initial_call=True,
)
def enable_kiosk(_, nav, respondent_data):
    """Turn this device into a shared survey terminal for the manager's organization."""
    if not _clicked():
        raise dash.exceptions.PreventUpdate
    try:
        org = get_organization(STORE, (nav or {}).get("org_id"))
    except AxionError:
        raise dash.exceptions.PreventUpdate
    session = RespondentSession.from_dict(respondent_data)
    session.enable_kiosk(org.access_code)
    log.info("Kiosk mode enabled for %s", org.access_code)
    nav = _goto(nav, "collaborator", org_id=org.id, reviewer=False)
    return nav, session.to_dict(), ResponseCollector().to_dict()


# --- Collaborator ---
@app.callback(
    Output("nav-store", "data", allow_duplicate=True),
    Output("collector-store", "data", allow_duplicate=True),
    Output("notice-store", "data", allow_duplicate=True),
    Input("collab-start", "n_clicks"),
    State("collab-code", "value"),
    State("respondent-store", "data"),
    State("nav-store", "data"),
    running=[(Output("collab-start", "disabled"), True, False)],
    prevent_initial_call=True,
)
def collaborator_login(_, code, respondent_data, nav):
    if not _clicked():
        raise dash.exceptions.PreventUpdate
    try:
        org = open_survey(STORE, code, RespondentSession.from_dict(respondent_data))
    except AxionError as exc:
        return no_update, no_update, _error_notice(exc)
    return _goto(nav, "collaborator", org_id=org.id), ResponseCollector().to_dict(), None


def _survey_context(nav):
    return get_organization(STORE, (nav or {}).get("org_id"))


@app.callback(
    Output("survey-body", "children"),
    Input("collector-store", "data"),
    State("nav-store", "data"),
    State("respondent-store", "data"),
    prevent_initial_call=True,
)
def render_survey(collector_data, nav, respondent_data):
    try:
        org = _survey_context(nav)
    except AxionError:
        raise dash.exceptions.PreventUpdate
    return survey_body(
        org,
        _restore_collector(collector_data),
        RespondentSession.from_dict(respondent_data),
    )


@app.callback(
    Output("collector-store", "data", allow_duplicate=True),
    Output("notice-store", "data", allow_duplicate=True),
    Input("ident-start", "n_clicks"),
    State("ident-sector", "value"),
    State("ident-function", "value"),
    State("collector-store", "data"),
    State("nav-store", "data"),
    prevent_initial_call=True,
)
def start_questions(_, sector, function, collector_data, nav):
    if not _clicked():
        raise dash.exceptions.PreventUpdate
    collector = _restore_collector(collector_data)
    try:
        org = _survey_context(nav)
        collector.start(sector, function, org.sectors, org.functions)
    except AxionError as exc:
        return no_update, _error_notice(exc)
    return collector.to_dict(), None


@app.callback(
    Output("collector-store", "data", allow_duplicate=True),
    Output("respondent-store", "data", allow_duplicate=True),
    Output("notice-store", "data", allow_duplicate=True),
    Input({"type": "answer", "value": ALL}, "n_clicks"),
    State("collector-store", "data"),
    State("respondent-store", "data"),
    State("nav-store", "data"),
    running=[
        (Output("survey-answers", "disabled"), True, False),
        (Output("survey-back", "disabled"), True, False),
        (Output("survey-busy", "children"), "Salvando...", ""),
    ],
    prevent_initial_call=True,
)
def answer_question(_, collector_data, respondent_data, nav):
    """
    Record the clicked answer and advance. Answering the last question writes
    the submission; if that write fails the survey stays on the last question.
    """
    if not _clicked():
        raise dash.exceptions.PreventUpdate
    collector = _restore_collector(collector_data)
    session = RespondentSession.from_dict(respondent_data)
    try:
        collector.answer(ctx.triggered_id["value"])
        if not collector.is_complete:
            return collector.to_dict(), no_update, None
        org = _survey_context(nav)
        submit(STORE, collector, org, session)
    except AxionError as exc:
        if collector.is_complete:
            collector.reopen()
        return collector.to_dict(), no_update, _error_notice(exc)
    return collector.to_dict(), session.to_dict(), None


@app.callback(
    Output("collector-store", "data", allow_duplicate=True),
    Input("survey-back", "n_clicks"),
    State("collector-store", "data"),
    prevent_initial_call=True,
)
def survey_back(_, collector_data):
    if not _clicked():
        raise dash.exceptions.PreventUpdate
    collector = _restore_collector(collector_data)
    try:
        collector.back()
    except AxionError:
        raise dash.exceptions.PreventUpdate
    return collector.to_dict()


@app.callback(
    Output("collector-store", "data", allow_duplicate=True),
    Input("survey-again", "n_clicks"),
    prevent_initial_call=True,
)
def survey_again(_):
    if not _clicked():
        raise dash.exceptions.PreventUpdate
    return ResponseCollector().to_dict()


@app.callback(
    Output("nav-store", "data", allow_duplicate=True),
    Output("respondent-store", "data", allow_duplicate=True),
    Output("collector-store", "data", allow_duplicate=True),
    Input("kiosk-off", "n_clicks"),
    State("nav-store", "data"),
    State("respondent-store", "data"),
    prevent_initial_call=True,
)
def disable_kiosk(_, nav, respondent_data):
    if not _clicked():
        raise dash.exceptions.PreventUpdate
    session = RespondentSession.from_dict(respondent_data)
    session.disable_kiosk()
    return _goto(nav, "home", org_id=None), session.to_dict(), None


# --- Technical reviewer ---
@app.callback(
    Output("nav-store", "data", allow_duplicate=True),
    Output("notice-store", "data", allow_duplicate=True),
    Input("tech-login", "n_clicks"),
    State("tech-secret", "value"),
    State("nav-store", "data"),
    running=[(Output("tech-login", "disabled"), True, False)],
    prevent_initial_call=True,
)
def tech_login(_, secret, nav):
    if not _clicked():
        raise dash.exceptions.PreventUpdate
    try:
        login_reviewer(secret, SETTINGS)
    except AxionError as exc:
        return no_update, _error_notice(exc)
    return _goto(nav, "tech", reviewer=True, org_id=None), None


@app.callback(
    Output("nav-store", "data", allow_duplicate=True),
    Input({"type": "org-select", "id": ALL}, "n_clicks"),
    State("nav-store", "data"),
    prevent_initial_call=True,
)
def select_organization(_, nav):
    if not _clicked():
        raise dash.exceptions.PreventUpdate
    return _goto(nav, "tech", selected_org=ctx.triggered_id["id"], report=False)


@app.callback(
    Output("nav-store", "data", allow_duplicate=True),
    Input("show-report", "n_clicks"),
    State("nav-store", "data"),
    prevent_initial_call=True,
)
def show_report(_, nav):
    if not _clicked():
        raise dash.exceptions.PreventUpdate
    return _goto(nav, "tech", report=True)


@app.callback(
    Output("org-list", "children"),
    Output("report-area", "children"),
    Output("reviewer-label", "children"),
    Output("tech-seen", "data"),
    Input("tech-tick", "n_intervals"),
    Input("theme-store", "data"),
    State("tech-seen", "data"),
    State("nav-store", "data"),
    prevent_initial_call=True,
)
def refresh_tech(_, theme, seen, nav):
    """Redraw the console when any of its live queries delivered a new snapshot."""
    sig = _live_signature(nav)
    if sig == seen and ctx.triggered_id == "tech-tick":
        raise dash.exceptions.PreventUpdate
    nav = dict(_default_nav(), **(nav or {}))
    try:
        return (
            _org_list(nav),
            _report_children(nav, theme or "light"),
            _reviewer_label(_reviewer_of(nav)),
            sig,
        )
    except AxionError as exc:
        log.error("Reviewer console refresh failed: %s", exc.message)
        raise dash.exceptions.PreventUpdate


@app.callback(
    Output("reviewer-form", "style"),
    Input("reviewer-edit", "n_clicks"),
    prevent_initial_call=True,
)
def open_reviewer_form(_):
    if not _clicked():
        raise dash.exceptions.PreventUpdate
    return {"display": "block"}


@app.callback(
    Output("reviewer-form", "style", allow_duplicate=True),
    Output("notice-store", "data", allow_duplicate=True),
    Input("reviewer-save", "n_clicks"),
    State("reviewer-name", "value"),
    State("reviewer-reg", "value"),
    State("nav-store", "data"),
    running=[(Output("reviewer-save", "disabled"), True, False)],
    prevent_initial_call=True,
)
def save_reviewer_profile(_, name, reg, nav):
    if not _clicked():
        raise dash.exceptions.PreventUpdate
    try:
        save_reviewer(STORE, name, reg, _reviewer_of(nav))
    except AxionError as exc:
        return no_update, _error_notice(exc)
    return {"display": "none"}, _notice("Responsável Técnico salvo com sucesso!")


# Exports
def _report_inputs(nav):
    org = get_organization(STORE, (nav or {}).get("selected_org"))
    submissions = [
        AssessmentSubmission(**d)
        for d in _docs(nav, SUBMISSIONS, {"organization_id": org.id})
    ]
    return org, submissions


@app.callback(
    Output("dl-csv-out", "data"),
    Output("notice-store", "data", allow_duplicate=True),
    Input("dl-csv", "n_clicks"),
    State("nav-store", "data"),
    prevent_initial_call=True,
)
def download_csv(_, nav):
    """
    Download the selected organization's raw answers as a CSV file.

    Returns:
        dcc.SendData: the CSV, one row per submission.
    """
    if not _clicked():
        raise dash.exceptions.PreventUpdate
    try:
        org, submissions = _report_inputs(nav)
        content = submissions_csv(submissions)
    except AxionError as exc:
        return no_update, _error_notice(exc)
    return (
        dcc.send_string(content, export_filename("avaliacoes", org.name, "csv")),
        _notice("CSV exportado com sucesso!"),
    )


@app.callback(
    Output("dl-pdf-out", "data"),
    Output("notice-store", "data", allow_duplicate=True),
    Input("dl-pdf", "n_clicks"),
    State("nav-store", "data"),
    State("theme-store", "data"),
    running=[(Output("dl-pdf", "disabled"), True, False)],
    prevent_initial_call=True,
)
def download_pdf(_, nav, theme):
    """
    Download the technical report as a PDF file.

    Charts that cannot be rendered to an image are left out of the document.
    """
    if not _clicked():
        raise dash.exceptions.PreventUpdate
    try:
        org, submissions = _report_inputs(nav)
        reviewer = _reviewer_of(nav)
        results = compute_domain_results(submissions)
        check_report_inputs(reviewer, results)
        matrix = sector_domain_matrix(submissions)
        data = dcc.send_bytes(
            lambda b: write_pdf_bytes(b, org, reviewer, results, matrix, theme or "light"),
            export_filename("Relatorio_NR1", org.name, "pdf"),
        )
    except AxionError as exc:
        return no_update, _error_notice(exc)
    except Exception:
        log.exception("PDF generation failed")
        return no_update, _notice("Erro ao gerar relatório PDF.", "error")
    return data, _notice("Relatório PDF gerado com sucesso!")


@app.callback(
    Output("dl-ppt-out", "data"),
    Output("notice-store", "data", allow_duplicate=True),
    Input("dl-ppt", "n_clicks"),
    State("nav-store", "data"),
    running=[(Output("dl-ppt", "disabled"), True, False)],
    prevent_initial_call=True,
)
def download_ppt(_, nav):
    if not _clicked():
        raise dash.exceptions.PreventUpdate
    try:
        org, submissions = _report_inputs(nav)
        reviewer = _reviewer_of(nav)
        results = compute_domain_results(submissions)
        check_report_inputs(reviewer, results)
        data = dcc.send_bytes(
            lambda b: write_pptx_bytes(b, org, reviewer, results),
            export_filename("Relatorio_NR1", org.name, "pptx"),
        )
    except AxionError as exc:
        return no_update, _error_notice(exc)
    except Exception:
        log.exception("PPTX generation failed")
        return no_update, _notice("Erro ao gerar apresentação.", "error")
    return data, _notice("Apresentação gerada com sucesso!")


# Theme toggle -> update page class and store
@app.callback(
    Output("page-root", "className"),
    Output("theme-store", "data"),
    Input("theme-switch", "on"),
)
def apply_theme(is_on):
    """Switch the page between the light and dark stylesheets; charts read theme-store."""
    theme = "dark" if is_on else "light"
    return f"page theme-{theme}", theme


# ---------- Main -------------------
if __name__ == "__main__":
    app.run(host=SETTINGS.HOST, port=SETTINGS.PORT, debug=SETTINGS.DEBUG)
