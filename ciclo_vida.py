# ciclo_vida.py
"""Transição in_progress -> completed de viagens e locações.

A conclusão grava o registro e o contador do ativo (quilometragem do caminhão
ou horímetro da máquina) na mesma transação: ou as duas escritas são
confirmadas, ou nenhuma.
"""
import logging
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError

from database import db
from erros import InvalidStateError, PartialCompletionError, StoreError, ValidationError
from metricas import consumo_combustivel
from models import Caminhao, Maquina, STATUS_CONCLUIDA, STATUS_EM_ANDAMENTO
from repositorio import buscar, converter_valor, notificar, obter

logger = logging.getLogger(__name__)


def _exigir_em_andamento(registro, descricao):
    if registro.status != STATUS_EM_ANDAMENTO:
        raise InvalidStateError(f"{descricao} {registro.id} já foi finalizada.")


def _exigir_leitura_maior(inicial, final, campo, mensagem):
    if final is None:
        raise ValidationError(f"O campo '{campo}' é obrigatório.", campo)
    if final <= inicial:
        raise ValidationError(mensagem, campo)


def _exigir_local_fim(local_fim):
    if local_fim is None or not str(local_fim).strip():
        raise ValidationError("Informe o local de chegada.", 'local_fim')
    return str(local_fim).strip()


def _atualizar_contador(ativo, campo, leitura, descricao):
    # Sobrescreve com a leitura absoluta; nunca retrocede um contador mais novo.
    if ativo is None:
        logger.warning("%s não encontrado; contador não atualizado", descricao)
        return
    atual = getattr(ativo, campo) or 0
    if leitura > atual:
        setattr(ativo, campo, leitura)
        logger.info("%s %s: %s atualizado de %s para %s", descricao, ativo.id, campo, atual, leitura)
    else:
        logger.info("%s %s: %s já em %s, leitura %s ignorada", descricao, ativo.id, campo, atual, leitura)


def _confirmar_conclusao(conta_id, *colecoes):
    try:
        db.session.commit()
    except SQLAlchemyError as e:
        logger.exception("Erro ao finalizar registro da conta %s", conta_id)
        try:
            db.session.rollback()
        except SQLAlchemyError as erro_rollback:
            raise PartialCompletionError(
                "A finalização falhou e não foi possível desfazer as alterações."
            ) from erro_rollback
        raise StoreError("Erro ao finalizar o registro.") from e
    for colecao in colecoes:
        notificar(colecao, conta_id)


def concluir_viagem(conta_id, id_viagem, local_fim, km_final, data_fim, hora_fim, litros_combustivel=0):
    viagem = obter('viagens', conta_id, id_viagem)
    _exigir_em_andamento(viagem, 'Viagem')

    km_final = converter_valor(type(viagem), 'km_final', km_final)
    _exigir_leitura_maior(viagem.km_inicial, km_final, 'km_final',
                          "O KM final deve ser maior que o KM inicial.")
    data_fim = converter_valor(type(viagem), 'data_fim', data_fim)
    hora_fim = converter_valor(type(viagem), 'hora_fim', hora_fim)
    litros = converter_valor(type(viagem), 'litros_combustivel', litros_combustivel) or 0
    if data_fim is None or hora_fim is None:
        raise ValidationError("Informe a data e a hora de chegada.", 'data_fim')
    if litros < 0:
        raise ValidationError("O campo 'litros_combustivel' não pode ser negativo.", 'litros_combustivel')
    if datetime.combine(data_fim, hora_fim) < datetime.combine(viagem.data_inicio, viagem.hora_inicio):
        raise ValidationError("A chegada não pode ser anterior à partida.", 'data_fim')
    local_fim = _exigir_local_fim(local_fim)

    viagem.local_fim = local_fim
    viagem.km_final = km_final
    viagem.data_fim = data_fim
    viagem.hora_fim = hora_fim
    viagem.litros_combustivel = litros
    viagem.consumo_combustivel = consumo_combustivel(litros, km_final - viagem.km_inicial)
    viagem.status = STATUS_CONCLUIDA

    caminhao = buscar(Caminhao, conta_id, viagem.id_caminhao)
    _atualizar_contador(caminhao, 'quilometragem', km_final, 'Caminhão')

    _confirmar_conclusao(conta_id, 'viagens', 'caminhoes')
    return viagem


def concluir_locacao(conta_id, id_locacao, local_fim, horimetro_final, data_fim):
    locacao = obter('locacoes', conta_id, id_locacao)
    _exigir_em_andamento(locacao, 'Locação')

    horimetro_final = converter_valor(type(locacao), 'horimetro_final', horimetro_final)
    _exigir_leitura_maior(locacao.horimetro_inicial, horimetro_final, 'horimetro_final',
                          "O horímetro final deve ser maior que o inicial.")
    data_fim = converter_valor(type(locacao), 'data_fim', data_fim)
    if data_fim is None:
        raise ValidationError("Informe a data de término.", 'data_fim')
    if data_fim < locacao.data_inicio:
        raise ValidationError("A data de término não pode ser anterior ao início.", 'data_fim')
    local_fim = _exigir_local_fim(local_fim)

    locacao.local_fim = local_fim
    locacao.horimetro_final = horimetro_final
    locacao.data_fim = data_fim
    locacao.status = STATUS_CONCLUIDA

    maquina = buscar(Maquina, conta_id, locacao.id_maquina)
    _atualizar_contador(maquina, 'horimetro', horimetro_final, 'Máquina')

    _confirmar_conclusao(conta_id, 'locacoes', 'maquinas')
    return locacao
