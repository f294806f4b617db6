from datetime import date, datetime, time

import pytest

from agregacao import (
    estatisticas_filtradas, estatisticas_mes_atual, meses_do_periodo, painel,
    resumo_locacoes, resumo_status, resumo_viagens, serie_mensal, totais,
)
from models import Caminhao, Locacao, Transacao, Viagem

AGORA = datetime(2024, 6, 15, 12, 0)


def _transacao(tipo, valor, data, **campos):
    categoria = 'Frete' if tipo == 'receita' else 'Combustível'
    return Transacao(tipo=tipo, valor=valor, data=data, descricao='Lançamento', categoria=categoria, **campos)


@pytest.fixture
def transacoes():
    return [
        _transacao('receita', 5000.0, date(2024, 6, 10), id_caminhao=1, id_motorista=1),
        _transacao('despesa', 1200.5, date(2024, 6, 11), id_caminhao=1, id_motorista=1),
        _transacao('receita', 3000.0, date(2024, 4, 2), id_caminhao=2, id_motorista=1),
        _transacao('despesa', 800.25, date(2024, 2, 20), id_caminhao=2, id_motorista=2),
        _transacao('receita', 150.0, date(2024, 1, 5), id_caminhao=1, id_motorista=2),
    ]


def test_totais():
    resultado = totais([
        _transacao('receita', 100.10, date(2024, 6, 1)),
        _transacao('receita', 200.20, date(2024, 6, 1)),
        _transacao('despesa', 50.05, date(2024, 6, 1)),
    ])

    assert resultado == {'receitas': 300.3, 'despesas': 50.05, 'lucro': 250.25}


def test_totais_sem_transacoes():
    assert totais([]) == {'receitas': 0, 'despesas': 0, 'lucro': 0}
    assert estatisticas_filtradas([], '30d', id_caminhao=9, agora=AGORA) == {'receitas': 0, 'despesas': 0, 'lucro': 0}


def test_estatisticas_filtradas_por_periodo_e_caminhao(transacoes):
    assert estatisticas_filtradas(transacoes, '30d', agora=AGORA) == {
        'receitas': 5000.0, 'despesas': 1200.5, 'lucro': 3799.5,
    }
    assert estatisticas_filtradas(transacoes, 'all', id_caminhao=2, agora=AGORA) == {
        'receitas': 3000.0, 'despesas': 800.25, 'lucro': 2199.75,
    }


def test_estatisticas_do_mes_atual(transacoes):
    assert estatisticas_mes_atual(transacoes, AGORA) == {'receitas': 5000.0, 'despesas': 1200.5, 'lucro': 3799.5}


@pytest.mark.parametrize('periodo, meses', [
    ('7d', 2), ('30d', 2), ('3m', 3), ('6m', 6), ('1y', 12), ('all', 6), (None, 6),
])
def test_meses_do_periodo(periodo, meses):
    assert meses_do_periodo(periodo) == meses


def test_serie_mensal_continua_e_ordenada(transacoes):
    serie = serie_mensal(transacoes, '6m', agora=AGORA)

    assert [(m['ano'], m['mes']) for m in serie] == [
        (2024, 1), (2024, 2), (2024, 3), (2024, 4), (2024, 5), (2024, 6),
    ]
    assert [m['rotulo'] for m in serie] == ['jan', 'fev', 'mar', 'abr', 'mai', 'jun']
    assert serie[2] == {'ano': 2024, 'mes': 3, 'rotulo': 'mar', 'receita': 0, 'despesa': 0}
    assert serie[5]['receita'] == 5000.0
    assert serie[5]['despesa'] == 1200.5


def test_serie_mensal_atravessa_a_virada_do_ano():
    serie = serie_mensal([], '3m', agora=datetime(2024, 1, 20))

    assert [(m['ano'], m['mes']) for m in serie] == [(2023, 11), (2023, 12), (2024, 1)]


def test_serie_mensal_aplica_filtros_em_cada_mes(transacoes):
    serie = serie_mensal(transacoes, '6m', id_motorista=2, agora=AGORA)

    assert [m['receita'] for m in serie] == [150.0, 0, 0, 0, 0, 0]
    assert [m['despesa'] for m in serie] == [0, 800.25, 0, 0, 0, 0]


def test_soma_da_serie_igual_ao_total_do_periodo(transacoes):
    serie = serie_mensal(transacoes, 'all', agora=AGORA)
    total = estatisticas_filtradas(transacoes, 'all', agora=AGORA)

    assert sum(m['receita'] for m in serie) == pytest.approx(total['receitas'])
    assert sum(m['despesa'] for m in serie) == pytest.approx(total['despesas'])


def test_resumo_viagens_sem_viagens_concluidas():
    em_andamento = Viagem(status='in_progress', km_inicial=1000, km_final=None,
                          data_inicio=date(2024, 6, 1), hora_inicio=time(8, 0), id_caminhao=1, id_motorista=1)

    resumo = resumo_viagens([em_andamento])

    assert resumo['ativas'] == 1
    assert resumo['concluidas'] == 0
    assert resumo['km_total'] == 0
    assert resumo['km_medio'] == 0


def test_resumo_viagens_km_medio():
    viagens = [
        Viagem(status='completed', km_inicial=1000, km_final=1500, litros_combustivel=150,
               data_inicio=date(2024, 6, 1), hora_inicio=time(8, 0), id_caminhao=1, id_motorista=1),
        Viagem(status='completed', km_inicial=1500, km_final=1800, litros_combustivel=90,
               data_inicio=date(2024, 6, 3), hora_inicio=time(8, 0), id_caminhao=1, id_motorista=2),
        Viagem(status='completed', km_inicial=500, km_final=900, litros_combustivel=120,
               data_inicio=date(2024, 6, 3), hora_inicio=time(8, 0), id_caminhao=2, id_motorista=2),
    ]

    resumo = resumo_viagens(viagens, id_caminhao=1)

    assert resumo['concluidas'] == 2
    assert resumo['km_total'] == 800
    assert resumo['km_medio'] == 400
    assert resumo['litros_total'] == 240


def test_resumo_locacoes():
    locacoes = [
        Locacao(status='completed', horimetro_inicial=100.0, horimetro_final=110.5, valor_hora=200.0,
                data_inicio=date(2024, 6, 1), data_fim=date(2024, 6, 2), id_maquina=1, id_motorista=1),
        Locacao(status='in_progress', horimetro_inicial=50.0, valor_hora=120.0,
                data_inicio=date(2024, 6, 5), id_maquina=2, id_motorista=1),
    ]

    resumo = resumo_locacoes(locacoes)

    assert resumo == {'total': 2, 'ativas': 1, 'concluidas': 1, 'horas_total': 10.5, 'valor_total': 2100.0}


def test_resumo_status():
    caminhoes = [Caminhao(status='active'), Caminhao(status='active'), Caminhao(status='maintenance')]

    assert resumo_status(caminhoes) == {'total': 3, 'active': 2, 'maintenance': 1}


def test_painel_filtrado_por_caminhao(transacoes):
    caminhoes = [Caminhao(id=1, status='active'), Caminhao(id=2, status='inactive')]

    dados = painel(caminhoes, [], [], [], [], transacoes, periodo='1y', id_caminhao=1, agora=AGORA)

    assert dados['caminhoes'] == {'total': 1, 'active': 1}
    assert dados['financeiro'] == {'receitas': 5150.0, 'despesas': 1200.5, 'lucro': 3949.5}
    assert len(dados['serie_mensal']) == 12
    assert dados['viagens']['km_medio'] == 0


def test_painel_filtra_locacoes_por_motorista():
    locacoes = [
        Locacao(status='completed', horimetro_inicial=100.0, horimetro_final=110.0, valor_hora=200.0,
                data_inicio=date(2024, 6, 1), data_fim=date(2024, 6, 2), id_maquina=1, id_motorista=1),
        Locacao(status='in_progress', horimetro_inicial=50.0, valor_hora=120.0,
                data_inicio=date(2024, 6, 5), id_maquina=2, id_motorista=2),
    ]

    dados = painel([], [], [], [], locacoes, [], id_motorista=2, agora=AGORA)

    assert dados['locacoes'] == {'total': 1, 'ativas': 1, 'concluidas': 0, 'horas_total': 0, 'valor_total': 0}
