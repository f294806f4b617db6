# backup.py
import logging

from sqlalchemy.exc import SQLAlchemyError

from database import db
from erros import DuplicateError, StoreError, ValidationError
from models import Usuario, agora_utc
from repositorio import COLECOES, exigir_pai, verificar_cpf, converter_valor, notificar, snapshot, validar

logger = logging.getLogger(__name__)

# Ordem de importação: pais antes dos filhos.
ORDEM_COLECOES = ('caminhoes', 'maquinas', 'motoristas', 'viagens', 'locacoes', 'transacoes')

# Campo de referência -> coleção referenciada.
REFERENCIAS = {
    'id_caminhao': 'caminhoes',
    'id_maquina': 'maquinas',
    'id_motorista': 'motoristas',
    'id_viagem': 'viagens',
    'id_locacao': 'locacoes',
}


def exportar_backup(conta_id):
    usuario = db.session.get(Usuario, conta_id)
    return {
        'data_exportacao': agora_utc().isoformat(),
        'id_usuario': conta_id,
        'nome_empresa': usuario.nome_empresa if usuario else None,
        'dados': {colecao: snapshot(colecao, conta_id) for colecao in ORDEM_COLECOES},
    }


def _resolver_referencia(conta_id, modelo, campo, colecao, antigo, novos_ids):
    antigo = converter_valor(modelo, campo, antigo)
    if antigo in novos_ids[colecao]:
        return novos_ids[colecao][antigo]
    # Fora do backup, só vale um registro que já pertence à conta.
    exigir_pai(COLECOES[colecao], conta_id, antigo, campo)
    return antigo


def _remapear(conta_id, modelo, dados, novos_ids):
    for campo, colecao in REFERENCIAS.items():
        if dados.get(campo) is not None:
            dados[campo] = _resolver_referencia(conta_id, modelo, campo, colecao, dados[campo], novos_ids)
    if dados.get('id_veiculo') is not None:
        colecao = 'caminhoes' if dados.get('tipo_veiculo') == 'caminhao' else 'maquinas'
        dados['id_veiculo'] = _resolver_referencia(
            conta_id, modelo, 'id_veiculo', colecao, dados['id_veiculo'], novos_ids)


def _colecoes_do_backup(backup):
    if not isinstance(backup, dict) or not isinstance(backup.get('dados'), dict):
        raise ValidationError("Arquivo de backup inválido.")
    colecoes = {}
    for colecao in ORDEM_COLECOES:
        registros = backup['dados'].get(colecao, [])
        if not isinstance(registros, list) or not all(isinstance(item, dict) for item in registros):
            raise ValidationError("Arquivo de backup inválido.", colecao)
        colecoes[colecao] = registros
    return colecoes


def importar_backup(conta_id, backup):
    """Recria os registros do backup na conta, com novos identificadores.

    Referências entre registros são reescritas para os novos ids; as que não
    apontam para o próprio backup precisam existir na conta. Cada registro
    passa pelas mesmas validações da criação. Retorna a quantidade importada
    por coleção.
    """
    if conta_id is None:
        raise ValidationError("Nenhuma conta autenticada.")
    colecoes = _colecoes_do_backup(backup)

    novos_ids = {colecao: {} for colecao in ORDEM_COLECOES}
    contagem = {}
    try:
        for colecao in ORDEM_COLECOES:
            modelo = COLECOES[colecao]
            registros = colecoes[colecao]
            for item in registros:
                dados = dict(item)
                id_antigo = dados.pop('id', None)
                for campo in ('id_usuario', 'criado_em', 'atualizado_em'):
                    dados.pop(campo, None)
                _remapear(conta_id, modelo, dados, novos_ids)
                registro = modelo(id_usuario=conta_id)
                for campo, valor in dados.items():
                    setattr(registro, campo, converter_valor(modelo, campo, valor))
                validar(colecao, registro)
                if colecao == 'motoristas':
                    verificar_cpf(conta_id, registro.cpf)
                db.session.add(registro)
                db.session.flush()
                novos_ids[colecao][id_antigo] = registro.id
            contagem[colecao] = len(registros)
        db.session.commit()
    except (ValidationError, DuplicateError):
        db.session.rollback()
        raise
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.exception("Erro ao importar backup da conta %s", conta_id)
        raise StoreError("Erro ao importar backup.") from e

    for colecao in ORDEM_COLECOES:
        notificar(colecao, conta_id)
    logger.info("Backup importado na conta %s: %s", conta_id, contagem)
    return contagem


def limpar_dados(conta_id):
    if conta_id is None:
        raise ValidationError("Nenhuma conta autenticada.")
    try:
        for colecao in reversed(ORDEM_COLECOES):
            COLECOES[colecao].query.filter_by(id_usuario=conta_id).delete()
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.exception("Erro ao limpar dados da conta %s", conta_id)
        raise StoreError("Erro ao limpar os dados.") from e

    for colecao in ORDEM_COLECOES:
        notificar(colecao, conta_id)
    logger.info("Dados da conta %s removidos", conta_id)
