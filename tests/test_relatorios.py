import base64
from datetime import date, datetime

import pytest

import relatorios
from erros import NotFoundError
from models import Caminhao, Motorista, Transacao

AGORA = datetime(2024, 6, 15, 12, 0)


def test_formatar_moeda_e_data():
    assert relatorios.formatar_moeda(1234.5) == 'R$ 1.234,50'
    assert relatorios.formatar_moeda(0) == 'R$ 0,00'
    assert relatorios.formatar_numero(150500) == '150.500'
    assert relatorios.formatar_data(date(2024, 3, 2)) == '02/03/2024'
    assert relatorios.formatar_data(None) == '-'


def test_grafico_sem_dados_nao_e_gerado():
    assert relatorios.gerar_grafico_pizza([], [], 'Vazio') is None
    assert relatorios.gerar_grafico_barras(['Receitas', 'Despesas'], [0, 0], 'Vazio') is None
    assert relatorios.gerar_grafico_mensal([{'ano': 2024, 'mes': 1, 'rotulo': 'jan', 'receita': 0, 'despesa': 0}], 'Vazio') is None


def test_relatorio_financeiro():
    transacoes = [
        Transacao(tipo='receita', valor=5000.0, data=date(2024, 6, 10), descricao='Frete', categoria='Frete', id_viagem=3),
        Transacao(tipo='despesa', valor=1200.0, data=date(2024, 6, 11), descricao='Diesel', categoria='Combustível'),
        Transacao(tipo='despesa', valor=300.0, data=date(2024, 6, 12), descricao='Pedágio', categoria='Pedágio'),
    ]

    contexto = relatorios.relatorio_financeiro(transacoes, '30d', agora=AGORA)

    assert contexto['resumo'][2] == ('Lucro Líquido', 'R$ 3.500,00')
    assert len(contexto['linhas']) == 3
    assert contexto['linhas'][0][-1] == 'Sim'
    assert [g['titulo'] for g in contexto['graficos']] == [
        'Distribuição de Gastos por Categoria', 'Comparativo: Receitas vs. Despesas', 'Evolução Mensal',
    ]
    assert base64.b64decode(contexto['graficos'][0]['imagem']).startswith(b'\x89PNG')


def test_relatorio_frota_e_motoristas():
    caminhoes = [
        Caminhao(placa='ABC1D23', marca='Volvo', modelo='FH', ano=2021, status='active', quilometragem=150500),
        Caminhao(placa='XYZ9A87', marca='Scania', modelo='R450', ano=2020, status='maintenance', quilometragem=80000),
    ]
    motoristas = [
        Motorista(nome='João', cpf='1', cnh_numero='1', cnh_categoria='E', cnh_validade=date(2024, 1, 1),
                  telefone='1', status='active'),
    ]

    frota = relatorios.relatorio_frota(caminhoes)
    equipe = relatorios.relatorio_motoristas(motoristas, hoje=date(2024, 6, 15))

    assert ('Em Manutenção', 1) in frota['resumo']
    assert frota['linhas'][0][-1] == '150.500 km'
    assert ('CNH Vencida', 1) in equipe['resumo']


def test_montar_relatorio(conta, viagem):
    contexto = relatorios.montar_relatorio('viagens', conta, agora=AGORA)

    assert contexto['titulo'] == 'Relatório de Viagens'
    assert contexto['data_emissao'] == '15/06/2024'
    assert contexto['linhas'][0][0] == 'ABC1D23'
    assert contexto['linhas'][0][6] == 'Em Andamento'


def test_relatorio_desconhecido(conta):
    with pytest.raises(NotFoundError):
        relatorios.montar_relatorio('estoque', conta)
