# filtros.py
from datetime import date, datetime, timedelta

from dateutil.relativedelta import relativedelta

from models import agora_utc

PERIODOS = ('7d', '30d', '3m', '6m', '1y', 'all')
INICIO_EPOCA = datetime(1970, 1, 1)


def resolver_inicio_periodo(periodo, agora=None):
    """Converte o token de período no instante inicial da janela.

    7d/30d descontam dias exatos de `agora`; 3m/6m/1y descontam meses de
    calendário e partem da meia-noite do dia resultante. 'all' (ou qualquer
    token desconhecido) não tem limite inferior.
    """
    agora = agora or agora_utc()
    meia_noite = datetime(agora.year, agora.month, agora.day)

    if periodo == '7d':
        return agora - timedelta(days=7)
    if periodo == '30d':
        return agora - timedelta(days=30)
    if periodo == '3m':
        return meia_noite - relativedelta(months=3)
    if periodo == '6m':
        return meia_noite - relativedelta(months=6)
    if periodo == '1y':
        return meia_noite - relativedelta(years=1)
    return INICIO_EPOCA


def data_do_registro(registro):
    # Datas de calendário valem a partir da meia-noite UTC do próprio dia.
    valor = registro.data_referencia
    if isinstance(valor, datetime):
        return valor
    if isinstance(valor, date):
        return datetime(valor.year, valor.month, valor.day)
    return datetime.fromisoformat(valor)


def _corresponde_entidades(registro, id_caminhao=None, id_motorista=None, id_viagem=None, id_locacao=None):
    if id_caminhao and getattr(registro, 'id_caminhao', None) != id_caminhao:
        return False
    if id_motorista and getattr(registro, 'id_motorista', None) != id_motorista:
        return False
    if id_viagem and getattr(registro, 'id_viagem', None) != id_viagem:
        return False
    if id_locacao and getattr(registro, 'id_locacao', None) != id_locacao:
        return False
    return True


def registro_corresponde(registro, periodo='all', id_caminhao=None, id_motorista=None,
                         id_viagem=None, id_locacao=None, agora=None, inicio=None):
    if periodo != 'all':
        if inicio is None:
            inicio = resolver_inicio_periodo(periodo, agora)
        if data_do_registro(registro) < inicio:
            return False
    return _corresponde_entidades(registro, id_caminhao, id_motorista, id_viagem, id_locacao)


def filtrar_registros(registros, periodo='all', id_caminhao=None, id_motorista=None,
                      id_viagem=None, id_locacao=None, agora=None):
    inicio = resolver_inicio_periodo(periodo, agora)
    return [
        r for r in registros
        if registro_corresponde(r, periodo, id_caminhao, id_motorista, id_viagem, id_locacao, inicio=inicio)
    ]


def filtrar_por_mes(registros, ano, mes, id_caminhao=None, id_motorista=None, id_viagem=None, id_locacao=None):
    selecionados = []
    for r in registros:
        data = data_do_registro(r)
        if data.year != ano or data.month != mes:
            continue
        if _corresponde_entidades(r, id_caminhao, id_motorista, id_viagem, id_locacao):
            selecionados.append(r)
    return selecionados
