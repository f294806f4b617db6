# relatorios.py
import io
import base64
import logging
from collections import defaultdict

from flask import render_template

# Biblioteca para os gráficos; o WeasyPrint (PDF) é carregado só em gerar_pdf
import matplotlib
matplotlib.use('Agg') # Usa um backend não-interativo para o Matplotlib
import matplotlib.pyplot as plt

from agregacao import painel, resumo_locacoes, resumo_status, resumo_viagens, serie_mensal, totais
from erros import NotFoundError
from filtros import filtrar_registros
from metricas import metricas_locacao, metricas_viagem
from models import DESPESA, RECEITA, agora_utc
from repositorio import listar

logger = logging.getLogger(__name__)

ROTULOS_STATUS = {
    'active': 'Ativo',
    'maintenance': 'Em Manutenção',
    'inactive': 'Inativo',
    'suspended': 'Suspenso',
    'in_progress': 'Em Andamento',
    'completed': 'Finalizada',
}
ROTULOS_PERIODO = {
    '7d': 'Últimos 7 dias',
    '30d': 'Últimos 30 dias',
    '3m': 'Últimos 3 meses',
    '6m': 'Últimos 6 meses',
    '1y': 'Último ano',
    'all': 'Todo o período',
}


# --- FORMATAÇÃO ---
def formatar_moeda(valor):
    texto = f"{valor:,.2f}".replace(',', '_').replace('.', ',').replace('_', '.')
    return f"R$ {texto}"


def formatar_numero(valor, casas=0):
    return f"{valor:,.{casas}f}".replace(',', '_').replace('.', ',').replace('_', '.')


def formatar_data(valor):
    return valor.strftime('%d/%m/%Y') if valor else '-'


def _status(valor):
    return ROTULOS_STATUS.get(valor, valor)


# --- FUNÇÕES AUXILIARES PARA GRÁFICOS ---
def _figura_para_base64(fig):
    buf = io.BytesIO()
    fig.savefig(buf, format='png', bbox_inches='tight')
    plt.close(fig)
    buf.seek(0)
    return base64.b64encode(buf.read()).decode('utf-8')


def gerar_grafico_pizza(labels, data, titulo):
    if not data or all(v == 0 for v in data): return None
    fig, ax = plt.subplots(figsize=(8, 5))
    ax.pie(data, labels=labels, autopct='%1.1f%%', startangle=90, colors=plt.cm.Paired.colors)
    ax.axis('equal')
    ax.set_title(titulo)
    return _figura_para_base64(fig)


def gerar_grafico_barras(labels, data, titulo):
    if not data or all(v == 0 for v in data): return None
    fig, ax = plt.subplots(figsize=(8, 5))
    colors = ['#28a745', '#dc3545'] # Verde para receita, vermelho para despesa
    ax.bar(labels, data, color=colors)
    ax.set_ylabel('Valor (R$)')
    ax.set_title(titulo)

    for i, v in enumerate(data):
        ax.text(i, v, formatar_moeda(v), ha='center', va='bottom')
    return _figura_para_base64(fig)


def gerar_grafico_mensal(serie, titulo):
    if not serie or all(m['receita'] == 0 and m['despesa'] == 0 for m in serie): return None
    fig, ax = plt.subplots(figsize=(9, 4.5))
    posicoes = range(len(serie))
    largura = 0.4
    ax.bar([p - largura / 2 for p in posicoes], [m['receita'] for m in serie], largura, label='Receita', color='#28a745')
    ax.bar([p + largura / 2 for p in posicoes], [m['despesa'] for m in serie], largura, label='Despesa', color='#dc3545')
    ax.set_xticks(list(posicoes))
    ax.set_xticklabels([f"{m['rotulo']}/{str(m['ano'])[2:]}" for m in serie])
    ax.set_ylabel('Valor (R$)')
    ax.set_title(titulo)
    ax.legend()
    return _figura_para_base64(fig)


def _graficos(*pares):
    return [{'titulo': titulo, 'imagem': imagem} for titulo, imagem in pares if imagem]


# --- MONTAGEM DOS RELATÓRIOS ---
def relatorio_painel(caminhoes, motoristas, maquinas, viagens, locacoes, transacoes,
                     periodo='all', id_caminhao=None, id_motorista=None, agora=None):
    dados = painel(caminhoes, motoristas, maquinas, viagens, locacoes, transacoes,
                   periodo, id_caminhao, id_motorista, agora=agora)
    financeiro = dados['financeiro']
    recentes = filtrar_registros(transacoes, periodo, id_caminhao, id_motorista, agora=agora)[:10]
    return {
        'titulo': 'Relatório do Dashboard',
        'subtitulo': ROTULOS_PERIODO.get(periodo, periodo),
        'resumo': [
            ('Total de Receitas', formatar_moeda(financeiro['receitas'])),
            ('Total de Despesas', formatar_moeda(financeiro['despesas'])),
            ('Lucro Líquido', formatar_moeda(financeiro['lucro'])),
            ('Caminhões', dados['caminhoes']['total']),
            ('Máquinas', dados['maquinas']['total']),
            ('Motoristas', dados['motoristas']['total']),
            ('Viagens Ativas', dados['viagens']['ativas']),
            ('Viagens Finalizadas', dados['viagens']['concluidas']),
            ('KM Rodados', f"{formatar_numero(dados['viagens']['km_total'])} km"),
            ('KM por Viagem', f"{formatar_numero(dados['viagens']['km_medio'])} km"),
            ('Locações Ativas', dados['locacoes']['ativas']),
        ],
        'cabecalho': ['Data', 'Descrição', 'Tipo', 'Valor'],
        'linhas': [
            [formatar_data(t.data), t.descricao, 'Receita' if t.tipo == RECEITA else 'Despesa', formatar_moeda(t.valor)]
            for t in recentes
        ],
        'titulo_tabela': 'Transações Recentes',
        'graficos': _graficos(
            ('Receitas x Despesas por Mês', gerar_grafico_mensal(dados['serie_mensal'], 'Receitas x Despesas por Mês')),
        ),
    }


def relatorio_financeiro(transacoes, periodo='all', id_caminhao=None, id_motorista=None, id_viagem=None, agora=None):
    filtradas = filtrar_registros(transacoes, periodo, id_caminhao, id_motorista, id_viagem, agora=agora)
    resumo = totais(filtradas)

    gastos_por_categoria = defaultdict(float)
    for t in filtradas:
        if t.tipo == DESPESA:
            gastos_por_categoria[t.categoria] += t.valor

    serie = serie_mensal(transacoes, periodo, id_caminhao, id_motorista, id_viagem, agora)
    return {
        'titulo': 'Relatório Financeiro',
        'subtitulo': ROTULOS_PERIODO.get(periodo, periodo),
        'resumo': [
            ('Total de Receitas', formatar_moeda(resumo['receitas'])),
            ('Total de Despesas', formatar_moeda(resumo['despesas'])),
            ('Lucro Líquido', formatar_moeda(resumo['lucro'])),
        ],
        'titulo_tabela': 'Detalhamento de Transações',
        'cabecalho': ['Data', 'Descrição', 'Categoria', 'Tipo', 'Valor', 'Vinculada à Viagem'],
        'linhas': [
            [formatar_data(t.data), t.descricao, t.categoria or '-',
             'Receita' if t.tipo == RECEITA else 'Despesa', formatar_moeda(t.valor),
             'Sim' if t.id_viagem else 'Não']
            for t in filtradas
        ],
        'graficos': _graficos(
            ('Distribuição de Gastos por Categoria', gerar_grafico_pizza(
                list(gastos_por_categoria.keys()), list(gastos_por_categoria.values()),
                'Distribuição de Gastos por Categoria')),
            ('Comparativo: Receitas vs. Despesas', gerar_grafico_barras(
                ['Receitas', 'Despesas'], [resumo['receitas'], resumo['despesas']],
                'Comparativo: Receitas vs. Despesas')),
            ('Evolução Mensal', gerar_grafico_mensal(serie, 'Evolução Mensal')),
        ),
    }


def relatorio_viagens(viagens, id_caminhao=None, id_motorista=None):
    resumo = resumo_viagens(viagens, id_caminhao, id_motorista)
    filtradas = filtrar_registros(viagens, 'all', id_caminhao, id_motorista)
    linhas = []
    for v in filtradas:
        m = metricas_viagem(v)
        linhas.append([
            v.placa_caminhao, v.nome_motorista, v.local_inicio, v.local_fim or '-',
            formatar_data(v.data_inicio), formatar_data(v.data_fim), _status(v.status),
            f"{formatar_numero(m['km_percorridos'])} km", formatar_numero(m['consumo_combustivel'], 3),
        ])
    return {
        'titulo': 'Relatório de Viagens',
        'resumo': [
            ('Viagens Ativas', resumo['ativas']),
            ('Viagens Finalizadas', resumo['concluidas']),
            ('Total de Viagens', resumo['total']),
            ('Quilometragem Total', f"{formatar_numero(resumo['km_total'])} km"),
            ('Média por Viagem', f"{formatar_numero(resumo['km_medio'])} km"),
        ],
        'titulo_tabela': 'Detalhamento de Viagens',
        'cabecalho': ['Placa', 'Motorista', 'Origem', 'Destino', 'Início', 'Fim', 'Status', 'KM', 'L/km'],
        'linhas': linhas,
        'graficos': [],
    }


def relatorio_frota(caminhoes):
    contagem = resumo_status(caminhoes)
    return {
        'titulo': 'Relatório da Frota',
        'resumo': [
            ('Caminhões Ativos', contagem.get('active', 0)),
            ('Em Manutenção', contagem.get('maintenance', 0)),
            ('Inativos', contagem.get('inactive', 0)),
            ('Total da Frota', contagem['total']),
        ],
        'titulo_tabela': 'Detalhamento da Frota',
        'cabecalho': ['Placa', 'Marca', 'Modelo', 'Ano', 'Cor', 'Status', 'Quilometragem'],
        'linhas': [
            [c.placa, c.marca, c.modelo, c.ano, c.cor or '-', _status(c.status),
             f"{formatar_numero(c.quilometragem)} km"]
            for c in caminhoes
        ],
        'graficos': [],
    }


def relatorio_motoristas(motoristas, hoje=None):
    hoje = hoje or agora_utc().date()
    contagem = resumo_status(motoristas)
    vencidas = sum(1 for m in motoristas if m.cnh_validade and m.cnh_validade < hoje)
    return {
        'titulo': 'Relatório de Motoristas',
        'resumo': [
            ('Motoristas Ativos', contagem.get('active', 0)),
            ('Inativos', contagem.get('inactive', 0)),
            ('Suspensos', contagem.get('suspended', 0)),
            ('CNH Vencida', vencidas),
            ('Total', contagem['total']),
        ],
        'titulo_tabela': 'Detalhamento de Motoristas',
        'cabecalho': ['Nome', 'CPF', 'CNH', 'Categoria', 'Validade', 'Telefone', 'Status'],
        'linhas': [
            [m.nome, m.cpf, m.cnh_numero, m.cnh_categoria, formatar_data(m.cnh_validade), m.telefone, _status(m.status)]
            for m in motoristas
        ],
        'graficos': [],
    }


def relatorio_maquinas(maquinas):
    contagem = resumo_status(maquinas)
    return {
        'titulo': 'Relatório de Máquinas',
        'resumo': [
            ('Máquinas Ativas', contagem.get('active', 0)),
            ('Em Manutenção', contagem.get('maintenance', 0)),
            ('Inativas', contagem.get('inactive', 0)),
            ('Total', contagem['total']),
            ('Horas Acumuladas', f"{formatar_numero(sum(m.horimetro or 0 for m in maquinas), 1)} h"),
        ],
        'titulo_tabela': 'Detalhamento de Máquinas',
        'cabecalho': ['Série', 'Marca', 'Modelo', 'Ano', 'Tipo', 'Status', 'Horímetro'],
        'linhas': [
            [m.numero_serie, m.marca, m.modelo, m.ano, m.tipo, _status(m.status), f"{formatar_numero(m.horimetro, 1)} h"]
            for m in maquinas
        ],
        'graficos': [],
    }


def relatorio_locacoes(locacoes):
    resumo = resumo_locacoes(locacoes)
    linhas = []
    for loc in locacoes:
        m = metricas_locacao(loc)
        linhas.append([
            loc.serie_maquina, loc.nome_motorista, loc.local_inicio,
            formatar_data(loc.data_inicio), formatar_data(loc.data_fim), _status(loc.status),
            f"{formatar_numero(m['total_horas'], 2)} h", m['dias_trabalhados'], formatar_moeda(m['valor_total']),
        ])
    return {
        'titulo': 'Relatório de Locações',
        'resumo': [
            ('Locações Ativas', resumo['ativas']),
            ('Locações Finalizadas', resumo['concluidas']),
            ('Horas Trabalhadas', f"{formatar_numero(resumo['horas_total'], 2)} h"),
            ('Valor Total', formatar_moeda(resumo['valor_total'])),
        ],
        'titulo_tabela': 'Detalhamento de Locações',
        'cabecalho': ['Máquina', 'Operador', 'Local', 'Início', 'Fim', 'Status', 'Horas', 'Dias', 'Valor'],
        'linhas': linhas,
        'graficos': [],
    }


TIPOS_RELATORIO = ('painel', 'financeiro', 'viagens', 'frota', 'motoristas', 'maquinas', 'locacoes')


def montar_relatorio(tipo, conta_id, periodo='all', id_caminhao=None, id_motorista=None, id_viagem=None, agora=None):
    """Carrega as coleções da conta e monta o contexto do relatório pedido."""
    if tipo == 'painel':
        contexto = relatorio_painel(
            listar('caminhoes', conta_id), listar('motoristas', conta_id), listar('maquinas', conta_id),
            listar('viagens', conta_id), listar('locacoes', conta_id), listar('transacoes', conta_id),
            periodo, id_caminhao, id_motorista, agora,
        )
    elif tipo == 'financeiro':
        contexto = relatorio_financeiro(listar('transacoes', conta_id), periodo, id_caminhao, id_motorista, id_viagem, agora)
    elif tipo == 'viagens':
        contexto = relatorio_viagens(listar('viagens', conta_id), id_caminhao, id_motorista)
    elif tipo == 'frota':
        contexto = relatorio_frota(listar('caminhoes', conta_id))
    elif tipo == 'motoristas':
        contexto = relatorio_motoristas(listar('motoristas', conta_id))
    elif tipo == 'maquinas':
        contexto = relatorio_maquinas(listar('maquinas', conta_id))
    elif tipo == 'locacoes':
        contexto = relatorio_locacoes(listar('locacoes', conta_id))
    else:
        raise NotFoundError(f"Relatório desconhecido: {tipo}")

    contexto['data_emissao'] = formatar_data(agora or agora_utc())
    return contexto


def gerar_pdf(contexto, nome_empresa=None):
    html_renderizado = render_template('relatorio_pdf.html', nome_empresa=nome_empresa, **contexto)
    logger.info("Gerando PDF '%s' com %d linhas", contexto['titulo'], len(contexto['linhas']))
    from weasyprint import HTML  # depende das bibliotecas nativas do Pango
    return HTML(string=html_renderizado).write_pdf()
