# agregacao.py
from dateutil.relativedelta import relativedelta

from filtros import filtrar_registros, filtrar_por_mes
from metricas import arredondar, km_percorridos, metricas_locacao
from models import RECEITA, DESPESA, STATUS_EM_ANDAMENTO, STATUS_CONCLUIDA, agora_utc

MESES_ABREVIADOS = ['jan', 'fev', 'mar', 'abr', 'mai', 'jun', 'jul', 'ago', 'set', 'out', 'nov', 'dez']

MESES_POR_PERIODO = {'7d': 2, '30d': 2, '3m': 3, '6m': 6, '1y': 12}
MESES_PADRAO = 6


def _soma(transacoes, tipo):
    return arredondar(sum(t.valor for t in transacoes if t.tipo == tipo))


def totais(transacoes):
    receitas = _soma(transacoes, RECEITA)
    despesas = _soma(transacoes, DESPESA)
    return {'receitas': receitas, 'despesas': despesas, 'lucro': arredondar(receitas - despesas)}


def estatisticas_filtradas(transacoes, periodo='all', id_caminhao=None, id_motorista=None,
                           id_viagem=None, agora=None):
    filtradas = filtrar_registros(transacoes, periodo, id_caminhao, id_motorista, id_viagem, agora=agora)
    return totais(filtradas)


def estatisticas_mes_atual(transacoes, agora=None):
    agora = agora or agora_utc()
    return totais(filtrar_por_mes(transacoes, agora.year, agora.month))


def meses_do_periodo(periodo):
    return MESES_POR_PERIODO.get(periodo, MESES_PADRAO)


def serie_mensal(transacoes, periodo='all', id_caminhao=None, id_motorista=None, id_viagem=None, agora=None):
    """Uma entrada por mês de calendário, da mais antiga até o mês corrente.

    Meses sem movimento entram com zero para manter a série contínua.
    """
    agora = agora or agora_utc()
    primeiro_dia = agora.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    quantidade = meses_do_periodo(periodo)

    serie = []
    for i in range(quantidade - 1, -1, -1):
        mes = primeiro_dia - relativedelta(months=i)
        do_mes = filtrar_por_mes(transacoes, mes.year, mes.month, id_caminhao, id_motorista, id_viagem)
        serie.append({
            'ano': mes.year,
            'mes': mes.month,
            'rotulo': MESES_ABREVIADOS[mes.month - 1],
            'receita': _soma(do_mes, RECEITA),
            'despesa': _soma(do_mes, DESPESA),
        })
    return serie


def resumo_viagens(viagens, id_caminhao=None, id_motorista=None):
    filtradas = filtrar_registros(viagens, 'all', id_caminhao, id_motorista)
    concluidas = [v for v in filtradas if v.status == STATUS_CONCLUIDA]
    km_total = sum(km_percorridos(v.km_inicial, v.km_final) for v in concluidas)
    return {
        'total': len(filtradas),
        'ativas': sum(1 for v in filtradas if v.status == STATUS_EM_ANDAMENTO),
        'concluidas': len(concluidas),
        'km_total': km_total,
        'km_medio': arredondar(km_total / max(len(concluidas), 1)),
        'litros_total': arredondar(sum(v.litros_combustivel or 0 for v in concluidas)),
    }


def resumo_locacoes(locacoes, id_maquina=None, id_motorista=None):
    filtradas = [
        loc for loc in locacoes
        if (not id_maquina or loc.id_maquina == id_maquina) and (not id_motorista or loc.id_motorista == id_motorista)
    ]
    concluidas = [loc for loc in filtradas if loc.status == STATUS_CONCLUIDA]
    metricas = [metricas_locacao(loc) for loc in concluidas]
    return {
        'total': len(filtradas),
        'ativas': sum(1 for loc in filtradas if loc.status == STATUS_EM_ANDAMENTO),
        'concluidas': len(concluidas),
        'horas_total': arredondar(sum(m['total_horas'] for m in metricas)),
        'valor_total': arredondar(sum(m['valor_total'] for m in metricas)),
    }


def resumo_status(registros):
    contagem = {'total': len(registros)}
    for r in registros:
        contagem[r.status] = contagem.get(r.status, 0) + 1
    return contagem


def painel(caminhoes, motoristas, maquinas, viagens, locacoes, transacoes,
           periodo='all', id_caminhao=None, id_motorista=None, id_viagem=None, agora=None):
    """Monta todos os números do dashboard para os filtros escolhidos."""
    if id_caminhao:
        caminhoes = [c for c in caminhoes if c.id == id_caminhao]
    if id_motorista:
        motoristas = [m for m in motoristas if m.id == id_motorista]
    return {
        'periodo': periodo,
        'caminhoes': resumo_status(caminhoes),
        'motoristas': resumo_status(motoristas),
        'maquinas': resumo_status(maquinas),
        'viagens': resumo_viagens(viagens, id_caminhao, id_motorista),
        'locacoes': resumo_locacoes(locacoes, id_motorista=id_motorista),
        'financeiro': estatisticas_filtradas(transacoes, periodo, id_caminhao, id_motorista, id_viagem, agora),
        'mes_atual': estatisticas_mes_atual(transacoes, agora),
        'serie_mensal': serie_mensal(transacoes, periodo, id_caminhao, id_motorista, id_viagem, agora),
    }
