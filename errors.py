# errors.py


class AxionError(Exception):
    """Base error; ``message`` is safe to show to the person using the app."""

    default_message = "Não foi possível concluir a operação."

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AxionError):
    default_message = "Dados inválidos."


class AlreadyRespondedError(ValidationError):
    default_message = "A AVALIAÇÃO JÁ FOI RESPONDIDA, OBRIGADO"


class NotFoundError(AxionError):
    default_message = "Registro não encontrado."


class AuthenticationError(AxionError):
    default_message = "Credenciais inválidas."


class StoreError(AxionError):
    default_message = "Erro de comunicação com o banco de dados."
