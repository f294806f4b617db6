# erros.py
from collections import namedtuple


class FrotaError(Exception):
    """Erro base do núcleo de gestão de frota."""

    def __init__(self, mensagem, campo=None):
        super().__init__(mensagem)
        self.mensagem = mensagem
        self.campo = campo


class ValidationError(FrotaError):
    pass


class DuplicateError(FrotaError):
    pass


class NotFoundError(FrotaError):
    pass


class InvalidStateError(FrotaError):
    pass


class StoreError(FrotaError):
    pass


class PartialCompletionError(StoreError):
    """A conclusão falhou e o rollback também; o estado gravado é incerto."""


Resultado = namedtuple('Resultado', ['ok', 'valor', 'erro'])


def executar(funcao, *args, **kwargs):
    # Converte erros do domínio em um resultado tipado; nada escapa como exceção.
    try:
        return Resultado(True, funcao(*args, **kwargs), None)
    except FrotaError as e:
        return Resultado(False, None, e)
