# --- Configuration --------------------------------------------------------------------------------

APP_TITLE = "AXION - NR-1 Análise de Riscos Psicossociais"

DOMAINS = [
    "Demandas de Trabalho",
    "Influência e Desenvolvimento",
    "Significado do Trabalho",
    "Relações Interpessoais",
    "Liderança",
    "Conflito Trabalho-Família",
    "Valores no Local de Trabalho",
    "Burnout e Estresse",
]

RESPONSE_OPTIONS = [
    {"label": "Nunca", "value": 0},
    {"label": "Raramente", "value": 1},
    {"label": "Às vezes", "value": 2},
    {"label": "Frequentemente", "value": 3},
    {"label": "Sempre", "value": 4},
]

VALID_ANSWERS = frozenset(opt["value"] for opt in RESPONSE_OPTIONS)
MAX_ANSWER = max(VALID_ANSWERS)

# A non-inverted question scores high when the answer is high (protective factor).
# An inverted question describes a hazard, so a high answer is flipped to a low score.
QUESTIONS = [
    # Demandas de Trabalho
    {
        "domain": "Demandas de Trabalho",
        "text": "Você atrasa a entrega do seu trabalho?",
        "inverted": True,
    },
    {
        "domain": "Demandas de Trabalho",
        "text": "O tempo para realizar as suas tarefas no trabalho é suficiente?",
        "inverted": False,
    },
    {
        "domain": "Demandas de Trabalho",
        "text": "É necessário manter um ritmo acelerado no trabalho?",
        "inverted": True,
    },
    {
        "domain": "Demandas de Trabalho",
        "text": "Você trabalha em ritmo acelerado ao longo de toda a jornada?",
        "inverted": True,
    },
    {
        "domain": "Demandas de Trabalho",
        "text": "Seu trabalho coloca você em situações emocionalmente desgastantes?",
        "inverted": True,
    },
    # Influência e Desenvolvimento
    {
        "domain": "Influência e Desenvolvimento",
        "text": "Você tem influência nas decisões sobre o seu trabalho?",
        "inverted": False,
    },
    {
        "domain": "Influência e Desenvolvimento",
        "text": "Você pode interferir na quantidade de trabalho atribuída a você?",
        "inverted": False,
    },
    {
        "domain": "Influência e Desenvolvimento",
        "text": "Você tem a possibilidade de aprender coisas novas através do seu trabalho?",
        "inverted": False,
    },
    {
        "domain": "Influência e Desenvolvimento",
        "text": "Seu trabalho permite que você tome iniciativas?",
        "inverted": False,
    },
    # Significado do Trabalho
    {
        "domain": "Significado do Trabalho",
        "text": "Seu trabalho é significativo para você?",
        "inverted": False,
    },
    {
        "domain": "Significado do Trabalho",
        "text": "Você sente que o trabalho que faz é importante?",
        "inverted": False,
    },
    {
        "domain": "Significado do Trabalho",
        "text": "Você recomendaria a um amigo uma vaga no seu local de trabalho?",
        "inverted": False,
    },
    # Relações Interpessoais
    {
        "domain": "Relações Interpessoais",
        "text": "Você é informado com antecedência sobre decisões importantes, mudanças ou planos para o futuro?",
        "inverted": False,
    },
    {
        "domain": "Relações Interpessoais",
        "text": "Você recebe toda a informação necessária para fazer bem o seu trabalho?",
        "inverted": False,
    },
    {
        "domain": "Relações Interpessoais",
        "text": "O seu trabalho é reconhecido e valorizado pelos seus superiores?",
        "inverted": False,
    },
    {
        "domain": "Relações Interpessoais",
        "text": "Você sabe exatamente o que se espera de você no trabalho?",
        "inverted": False,
    },
    {
        "domain": "Relações Interpessoais",
        "text": "Você recebe ajuda e apoio dos seus colegas de trabalho?",
        "inverted": False,
    },
    # Liderança
    {
        "domain": "Liderança",
        "text": "Seu superior imediato dá prioridade à satisfação com o trabalho?",
        "inverted": False,
    },
    {
        "domain": "Liderança",
        "text": "Seu superior imediato planeja bem o trabalho?",
        "inverted": False,
    },
    {
        "domain": "Liderança",
        "text": "Seu superior imediato está disposto a ouvir os seus problemas no trabalho?",
        "inverted": False,
    },
    {
        "domain": "Liderança",
        "text": "Você recebe ajuda e suporte do seu superior imediato?",
        "inverted": False,
    },
    # Conflito Trabalho-Família
    {
        "domain": "Conflito Trabalho-Família",
        "text": "Seu trabalho consome tanta energia que tem um efeito negativo na sua vida particular?",
        "inverted": True,
    },
    {
        "domain": "Conflito Trabalho-Família",
        "text": "Seu trabalho ocupa tanto tempo que tem um efeito negativo na sua vida particular?",
        "inverted": True,
    },
    # Valores no Local de Trabalho
    {
        "domain": "Valores no Local de Trabalho",
        "text": "Você pode confiar nas informações que vêm dos seus superiores?",
        "inverted": False,
    },
    {
        "domain": "Valores no Local de Trabalho",
        "text": "Os seus superiores confiam que os funcionários farão bem o seu trabalho?",
        "inverted": False,
    },
    {
        "domain": "Valores no Local de Trabalho",
        "text": "Os conflitos são resolvidos de forma justa?",
        "inverted": False,
    },
    {
        "domain": "Valores no Local de Trabalho",
        "text": "O trabalho é distribuído de forma justa?",
        "inverted": False,
    },
    # Burnout e Estresse
    {
        "domain": "Burnout e Estresse",
        "text": "Com que frequência você se sente fisicamente esgotado?",
        "inverted": True,
    },
    {
        "domain": "Burnout e Estresse",
        "text": "Com que frequência você se sente emocionalmente esgotado?",
        "inverted": True,
    },
    {
        "domain": "Burnout e Estresse",
        "text": "Com que frequência você se sente estressado?",
        "inverted": True,
    },
    {
        "domain": "Burnout e Estresse",
        "text": "Com que frequência você se sente irritado?",
        "inverted": True,
    },
]

# Corrected-score thresholds (a higher score means a lower risk).
HIGH_RISK_BELOW = 50
MODERATE_RISK_BELOW = 75

RISK_LABELS = {"Low": "Leve", "Moderate": "Moderado", "High": "Alto"}
RISK_COLORS = {"Low": "#10b981", "Moderate": "#f59e0b", "High": "#ef4444"}

ACCESS_CODE_PREFIX = "#EMP "
ACCESS_CODE_LENGTH = 6
ACCESS_CODE_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"

CSV_DELIMITER = ";"
DATE_FORMAT = "%d/%m/%Y"


def question_key(index):
    """Positional key of the question at 0-based ``index`` (``P1`` .. ``Pn``)."""
    return f"P{index + 1}"


QUESTION_KEYS = [question_key(i) for i in range(len(QUESTIONS))]
