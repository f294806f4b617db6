# metricas.py
"""Métricas derivadas calculadas na leitura de viagens e locações.

Funções puras: recebem os registros (ou valores simples) e devolvem números
já arredondados. Valores monetários usam 2 casas, consumo de combustível 3
casas e as demais grandezas 2 casas.
"""
import math
from datetime import date, datetime, time

HORAS_POR_DIA_TRABALHADO = 8


def arredondar(valor, casas=2):
    # Arredondamento "half-up" sobre o valor escalado.
    fator = 10 ** casas
    return math.floor(valor * fator + 0.5) / fator


def _como_data(valor):
    if isinstance(valor, datetime):
        return valor.date()
    if isinstance(valor, str):
        return date.fromisoformat(valor[:10])
    return valor


def _como_hora(valor):
    if isinstance(valor, str):
        return time.fromisoformat(valor)
    return valor


# --- VIAGENS ---
def km_percorridos(km_inicial, km_final):
    if km_final is None:
        return 0
    return max(0, km_final - km_inicial)


def consumo_combustivel(litros, km):
    if not litros or km <= 0:
        return 0
    return arredondar(litros / km, 3)


def duracao_viagem(data_inicio, hora_inicio, data_fim=None, hora_fim=None):
    if not data_fim or hora_fim is None:
        return {'horas': 0, 'dias': 0}
    inicio = datetime.combine(_como_data(data_inicio), _como_hora(hora_inicio))
    fim = datetime.combine(_como_data(data_fim), _como_hora(hora_fim))
    segundos = (fim - inicio).total_seconds()
    return {
        'horas': arredondar(segundos / 3600),
        'dias': arredondar(segundos / 86400),
    }


def metricas_viagem(viagem):
    km = km_percorridos(viagem.km_inicial, viagem.km_final)
    duracao = duracao_viagem(viagem.data_inicio, viagem.hora_inicio, viagem.data_fim, viagem.hora_fim)
    return {
        'km_percorridos': km,
        'consumo_combustivel': consumo_combustivel(viagem.litros_combustivel, km),
        'horas': duracao['horas'],
        'dias': duracao['dias'],
    }


# --- LOCAÇÕES ---
def dias_trabalhados(data_inicio, data_fim=None):
    """Dias de calendário (UTC) entre início e fim, contando as duas pontas."""
    inicio = _como_data(data_inicio)
    fim = _como_data(data_fim) if data_fim else inicio
    diferenca = (fim - inicio).days
    return max(1, math.ceil(diferenca) + 1)


def metricas_locacao(locacao):
    if locacao.horimetro_final is None:
        return {'total_horas': 0, 'dias_trabalhados': 0, 'horas_efetivas': 0, 'valor_total': 0}

    total_horas = locacao.horimetro_final - locacao.horimetro_inicial
    dias = dias_trabalhados(locacao.data_inicio, locacao.data_fim)
    return {
        'total_horas': arredondar(total_horas),
        'dias_trabalhados': dias,
        'horas_efetivas': dias * HORAS_POR_DIA_TRABALHADO,
        'valor_total': arredondar(total_horas * locacao.valor_hora),
    }
