from datetime import date, datetime, timedelta

import pytest

from filtros import (
    INICIO_EPOCA, filtrar_por_mes, filtrar_registros, registro_corresponde, resolver_inicio_periodo,
)
from models import Transacao

AGORA = datetime(2024, 6, 15, 12, 0)


def _transacao(data, **campos):
    dados = dict(tipo='receita', descricao='Frete', valor=100.0, categoria='Frete', data=data)
    dados.update(campos)
    return Transacao(**dados)


@pytest.mark.parametrize('periodo, esperado', [
    ('7d', AGORA - timedelta(days=7)),
    ('30d', AGORA - timedelta(days=30)),
    ('3m', datetime(2024, 3, 15)),
    ('6m', datetime(2023, 12, 15)),
    ('1y', datetime(2023, 6, 15)),
    ('all', INICIO_EPOCA),
    ('qualquer', INICIO_EPOCA),
])
def test_resolver_inicio_periodo(periodo, esperado):
    assert resolver_inicio_periodo(periodo, AGORA) == esperado


def test_meses_de_calendario_respeitam_o_fim_do_mes():
    assert resolver_inicio_periodo('3m', datetime(2024, 5, 31, 9, 0)) == datetime(2024, 2, 29)


def test_filtro_por_periodo():
    recente = _transacao(date(2024, 6, 1))
    antiga = _transacao(date(2024, 5, 1))

    assert filtrar_registros([recente, antiga], '30d', agora=AGORA) == [recente]
    assert filtrar_registros([recente, antiga], 'all', agora=AGORA) == [recente, antiga]


def test_data_do_registro_vale_a_partir_da_meia_noite():
    # 7 dias antes de 15/06 12:00 é 08/06 12:00; o registro de 08/06 fica de fora.
    no_limite = _transacao(date(2024, 6, 8))
    dia_seguinte = _transacao(date(2024, 6, 9))

    assert filtrar_registros([no_limite, dia_seguinte], '7d', agora=AGORA) == [dia_seguinte]


def test_filtros_de_entidade_sao_conjuntivos():
    ambos = _transacao(date(2024, 6, 1), id_caminhao=1, id_motorista=7)
    so_caminhao = _transacao(date(2024, 6, 1), id_caminhao=1, id_motorista=8)
    so_motorista = _transacao(date(2024, 6, 1), id_caminhao=2, id_motorista=7)
    registros = [ambos, so_caminhao, so_motorista]

    assert filtrar_registros(registros, id_caminhao=1, id_motorista=7, agora=AGORA) == [ambos]
    assert filtrar_registros(registros, id_caminhao=1, agora=AGORA) == [ambos, so_caminhao]


def test_filtro_por_viagem_e_locacao():
    da_viagem = _transacao(date(2024, 6, 1), id_viagem=3)
    da_locacao = _transacao(date(2024, 6, 1), id_locacao=4)

    assert filtrar_registros([da_viagem, da_locacao], id_viagem=3) == [da_viagem]
    assert filtrar_registros([da_viagem, da_locacao], id_locacao=4) == [da_locacao]


def test_filtro_e_idempotente():
    registros = [
        _transacao(date(2024, 6, d), id_caminhao=d % 2 + 1) for d in range(1, 15)
    ]

    uma_vez = filtrar_registros(registros, '7d', id_caminhao=1, agora=AGORA)
    duas_vezes = filtrar_registros(uma_vez, '7d', id_caminhao=1, agora=AGORA)

    assert uma_vez == duas_vezes
    assert uma_vez


def test_filtro_sobre_lista_vazia():
    assert filtrar_registros([], '30d', id_caminhao=1, agora=AGORA) == []


def test_registro_corresponde_sem_periodo_ignora_a_data():
    assert registro_corresponde(_transacao(date(1990, 1, 1)), 'all')


def test_filtrar_por_mes():
    junho = _transacao(date(2024, 6, 30), id_motorista=5)
    julho = _transacao(date(2024, 7, 1), id_motorista=5)
    outro_motorista = _transacao(date(2024, 6, 10), id_motorista=6)

    assert filtrar_por_mes([junho, julho, outro_motorista], 2024, 6, id_motorista=5) == [junho]
