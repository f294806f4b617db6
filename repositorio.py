# repositorio.py
"""Acesso às coleções da conta: leitura, escrita e assinatura de snapshots.

Toda operação recebe o identificador da conta explicitamente; nada é inferido
do usuário logado. Após cada escrita confirmada, os assinantes da coleção
recebem a lista completa e atualizada de registros.
"""
import logging
import math
from collections import defaultdict
from datetime import date, datetime, time

from sqlalchemy.exc import SQLAlchemyError

from database import db
from erros import DuplicateError, NotFoundError, StoreError, ValidationError
from models import (
    Caminhao, Maquina, Motorista, Viagem, Locacao, Transacao,
    STATUS_ATIVOS, STATUS_MOTORISTA, STATUS_CICLO, STATUS_CONCLUIDA, STATUS_EM_ANDAMENTO, TIPOS_MAQUINA,
    TIPOS_TRANSACAO, TIPOS_VEICULO, CATEGORIAS,
)

logger = logging.getLogger(__name__)

COLECOES = {
    'caminhoes': Caminhao,
    'maquinas': Maquina,
    'motoristas': Motorista,
    'viagens': Viagem,
    'locacoes': Locacao,
    'transacoes': Transacao,
}

CAMPOS_OBRIGATORIOS = {
    'caminhoes': ('placa', 'marca', 'modelo', 'ano'),
    'maquinas': ('numero_serie', 'marca', 'modelo', 'ano', 'tipo'),
    'motoristas': ('nome', 'cpf', 'cnh_numero', 'cnh_categoria', 'cnh_validade', 'telefone'),
    'viagens': ('id_caminhao', 'id_motorista', 'local_inicio', 'data_inicio', 'hora_inicio'),
    'locacoes': ('id_maquina', 'id_motorista', 'local_inicio', 'data_inicio', 'valor_hora'),
    'transacoes': ('tipo', 'descricao', 'valor', 'data', 'categoria'),
}

# Campos que só o ciclo de vida (ou o próprio banco) preenche.
CAMPOS_SISTEMA = ('id', 'id_usuario', 'criado_em', 'atualizado_em')
CAMPOS_PROTEGIDOS = {
    'viagens': ('status', 'consumo_combustivel', 'placa_caminhao', 'nome_motorista'),
    'locacoes': ('status', 'serie_maquina', 'nome_motorista'),
}
# Referências cujos nomes e placas foram copiados na criação.
CAMPOS_FIXOS = {
    'viagens': ('id_caminhao', 'id_motorista'),
    'locacoes': ('id_maquina', 'id_motorista'),
}
CAMPOS_CONCLUSAO = {
    'viagens': ('local_fim', 'km_final', 'data_fim', 'hora_fim', 'litros_combustivel'),
    'locacoes': ('local_fim', 'horimetro_final', 'data_fim'),
}

CAMPOS_NAO_NEGATIVOS = {
    'caminhoes': ('quilometragem',),
    'maquinas': ('horimetro',),
    'viagens': ('km_inicial', 'km_final', 'litros_combustivel'),
    'locacoes': ('horimetro_inicial', 'horimetro_final', 'valor_hora'),
    'transacoes': ('valor',),
}

ORDENACAO = {
    'caminhoes': Caminhao.placa,
    'maquinas': Maquina.numero_serie,
    'motoristas': Motorista.nome,
    'viagens': Viagem.data_inicio.desc(),
    'locacoes': Locacao.data_inicio.desc(),
    'transacoes': Transacao.data.desc(),
}

_assinantes = defaultdict(list)


def modelo_da_colecao(colecao):
    try:
        return COLECOES[colecao]
    except KeyError:
        raise NotFoundError(f"Coleção desconhecida: {colecao}") from None


def _exigir_conta(conta_id):
    if conta_id is None:
        raise ValidationError("Nenhuma conta autenticada.")


# --- LEITURA ---
def listar(colecao, conta_id):
    modelo = modelo_da_colecao(colecao)
    if conta_id is None:
        return []
    try:
        return modelo.query.filter_by(id_usuario=conta_id).order_by(ORDENACAO[colecao], modelo.id.desc()).all()
    except SQLAlchemyError as e:
        logger.exception("Erro ao carregar %s da conta %s", colecao, conta_id)
        raise StoreError(f"Erro ao carregar {colecao}.") from e


def buscar(modelo, conta_id, id):
    if id is None:
        return None
    registro = db.session.get(modelo, id)
    if registro is None or registro.id_usuario != conta_id:
        return None
    return registro


def obter(colecao, conta_id, id):
    modelo = modelo_da_colecao(colecao)
    registro = buscar(modelo, conta_id, id)
    if registro is None:
        raise NotFoundError(f"Registro {id} não encontrado em {colecao}.")
    return registro


def snapshot(colecao, conta_id):
    return [r.para_dict() for r in listar(colecao, conta_id)]


# --- ASSINATURAS ---
def assinar(colecao, conta_id, callback):
    """Registra `callback` para receber a coleção completa a cada mudança.

    O snapshot atual é entregue imediatamente. Retorna a função que cancela
    a assinatura.
    """
    modelo_da_colecao(colecao)
    if conta_id is None:
        callback([])
        return lambda: None

    chave = (colecao, conta_id)
    _assinantes[chave].append(callback)
    callback(snapshot(colecao, conta_id))

    def cancelar():
        if callback in _assinantes[chave]:
            _assinantes[chave].remove(callback)
    return cancelar


def notificar(colecao, conta_id):
    callbacks = list(_assinantes.get((colecao, conta_id), ()))
    if not callbacks:
        return
    dados = snapshot(colecao, conta_id)
    for callback in callbacks:
        try:
            callback(dados)
        except Exception:
            logger.exception("Assinante de %s falhou ao receber snapshot", colecao)


def confirmar(conta_id, *colecoes):
    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.exception("Erro ao gravar %s da conta %s", ', '.join(colecoes), conta_id)
        raise StoreError("Erro ao gravar no banco de dados.") from e
    for colecao in colecoes:
        notificar(colecao, conta_id)


# --- CONVERSÃO E VALIDAÇÃO ---
def converter_valor(modelo, campo, valor):
    coluna = modelo.__table__.columns.get(campo)
    if coluna is None:
        raise ValidationError(f"Campo desconhecido: '{campo}'.", campo)
    if valor is None or (isinstance(valor, str) and not valor.strip()):
        return None

    tipo = coluna.type
    try:
        if isinstance(tipo, db.DateTime):
            return valor if isinstance(valor, datetime) else datetime.fromisoformat(valor)
        if isinstance(tipo, db.Date):
            if isinstance(valor, datetime):
                return valor.date()
            return valor if isinstance(valor, date) else date.fromisoformat(str(valor)[:10])
        if isinstance(tipo, db.Time):
            return valor if isinstance(valor, time) else time.fromisoformat(str(valor))
        if isinstance(tipo, db.Integer):
            if isinstance(valor, float) and not valor.is_integer():
                raise ValueError(valor)
            return int(valor)
        if isinstance(tipo, db.Float):
            numero = float(valor)
            if not math.isfinite(numero):
                raise ValueError(valor)
            return numero
        return str(valor).strip()
    except (TypeError, ValueError, OverflowError):
        raise ValidationError(f"Valor inválido para '{campo}': {valor!r}.", campo) from None


def _aplicar(colecao, registro, dados, bloqueados):
    modelo = type(registro)
    for campo, valor in dados.items():
        if campo in bloqueados:
            raise ValidationError(f"O campo '{campo}' não pode ser alterado diretamente.", campo)
        setattr(registro, campo, converter_valor(modelo, campo, valor))


def _validar_escolha(registro, campo, opcoes):
    valor = getattr(registro, campo)
    if valor not in opcoes:
        raise ValidationError(f"Valor inválido para '{campo}': {valor!r}.", campo)


def _exigir_campos(registro, campos):
    for campo in campos:
        if getattr(registro, campo) is None:
            raise ValidationError(f"O campo '{campo}' é obrigatório.", campo)


def validar(colecao, registro):
    _exigir_campos(registro, [
        c.name for c in registro.__table__.columns
        if not c.nullable and c.name not in ('id', 'criado_em')
    ])

    for campo in CAMPOS_NAO_NEGATIVOS.get(colecao, ()):
        valor = getattr(registro, campo)
        if valor is not None and valor < 0:
            raise ValidationError(f"O campo '{campo}' não pode ser negativo.", campo)

    if colecao in ('caminhoes', 'maquinas'):
        _validar_escolha(registro, 'status', STATUS_ATIVOS)
    if colecao == 'maquinas':
        _validar_escolha(registro, 'tipo', TIPOS_MAQUINA)
    if colecao == 'motoristas':
        _validar_escolha(registro, 'status', STATUS_MOTORISTA)
    if colecao in ('viagens', 'locacoes'):
        _validar_escolha(registro, 'status', STATUS_CICLO)
        if registro.status == STATUS_CONCLUIDA:
            _exigir_campos(registro, CAMPOS_CONCLUSAO[colecao][:3])
    if colecao == 'viagens' and registro.km_final is not None and registro.km_final <= registro.km_inicial:
        raise ValidationError("O KM final deve ser maior que o KM inicial.", 'km_final')
    if colecao == 'locacoes' and registro.horimetro_final is not None \
            and registro.horimetro_final <= registro.horimetro_inicial:
        raise ValidationError("O horímetro final deve ser maior que o inicial.", 'horimetro_final')
    if colecao == 'transacoes':
        _validar_escolha(registro, 'tipo', TIPOS_TRANSACAO)
        if registro.categoria not in CATEGORIAS[registro.tipo]:
            raise ValidationError(f"Categoria inválida para {registro.tipo}: {registro.categoria!r}.", 'categoria')
        if (registro.tipo_veiculo is None) != (registro.id_veiculo is None):
            raise ValidationError("Informe o tipo e o identificador do veículo juntos.", 'id_veiculo')
        if registro.tipo_veiculo is not None:
            _validar_escolha(registro, 'tipo_veiculo', TIPOS_VEICULO)


def exigir_pai(modelo, conta_id, id, campo):
    pai = buscar(modelo, conta_id, id)
    if pai is None:
        raise ValidationError(f"Referência inexistente em '{campo}': {id}.", campo)
    return pai


def _validar_referencias(conta_id, registro):
    referencias = (
        (Caminhao, 'id_caminhao'), (Motorista, 'id_motorista'),
        (Viagem, 'id_viagem'), (Locacao, 'id_locacao'),
    )
    for modelo, campo in referencias:
        if getattr(registro, campo) is not None:
            exigir_pai(modelo, conta_id, getattr(registro, campo), campo)
    if registro.id_veiculo is not None:
        modelo = Caminhao if registro.tipo_veiculo == 'caminhao' else Maquina
        exigir_pai(modelo, conta_id, registro.id_veiculo, 'id_veiculo')


def verificar_cpf(conta_id, cpf, ignorar_id=None):
    consulta = Motorista.query.filter_by(id_usuario=conta_id, cpf=cpf)
    if ignorar_id is not None:
        consulta = consulta.filter(Motorista.id != ignorar_id)
    if consulta.first() is not None:
        raise DuplicateError(f"CPF {cpf} já cadastrado.", 'cpf')


def _preencher_copias(colecao, conta_id, registro):
    # Nomes e placas copiados no momento da criação; não acompanham edições futuras.
    motorista = exigir_pai(Motorista, conta_id, registro.id_motorista, 'id_motorista')
    registro.nome_motorista = motorista.nome
    if colecao == 'viagens':
        caminhao = exigir_pai(Caminhao, conta_id, registro.id_caminhao, 'id_caminhao')
        registro.placa_caminhao = caminhao.placa
        if registro.km_inicial is None:
            registro.km_inicial = caminhao.quilometragem
    else:
        maquina = exigir_pai(Maquina, conta_id, registro.id_maquina, 'id_maquina')
        registro.serie_maquina = maquina.numero_serie
        if registro.horimetro_inicial is None:
            registro.horimetro_inicial = maquina.horimetro


# --- ESCRITA ---
def criar(colecao, conta_id, dados):
    _exigir_conta(conta_id)
    modelo = modelo_da_colecao(colecao)
    bloqueados = CAMPOS_SISTEMA + CAMPOS_PROTEGIDOS.get(colecao, ()) + CAMPOS_CONCLUSAO.get(colecao, ())

    registro = modelo(id_usuario=conta_id)
    _aplicar(colecao, registro, dados, bloqueados)
    if colecao == 'caminhoes' and isinstance(registro.placa, str):
        registro.placa = registro.placa.upper()

    _exigir_campos(registro, CAMPOS_OBRIGATORIOS[colecao])
    if colecao in ('viagens', 'locacoes'):
        registro.status = STATUS_EM_ANDAMENTO
        _preencher_copias(colecao, conta_id, registro)
    for campo, padrao in (('status', 'active'), ('quilometragem', 0), ('horimetro', 0.0)):
        if campo in modelo.__table__.columns and getattr(registro, campo) is None:
            setattr(registro, campo, padrao)

    validar(colecao, registro)
    if colecao == 'transacoes':
        _validar_referencias(conta_id, registro)
    if colecao == 'motoristas':
        verificar_cpf(conta_id, registro.cpf)

    db.session.add(registro)
    confirmar(conta_id, colecao)
    logger.info("Registro %s criado em %s (conta %s)", registro.id, colecao, conta_id)
    return registro.id


def atualizar(colecao, conta_id, id, dados):
    _exigir_conta(conta_id)
    registro = obter(colecao, conta_id, id)
    bloqueados = CAMPOS_SISTEMA + CAMPOS_PROTEGIDOS.get(colecao, ()) + CAMPOS_FIXOS.get(colecao, ())

    try:
        # As consultas de validação não podem descarregar a alteração pendente.
        with db.session.no_autoflush:
            _aplicar(colecao, registro, dados, bloqueados)
            if colecao == 'caminhoes' and 'placa' in dados and registro.placa:
                registro.placa = registro.placa.upper()
            validar(colecao, registro)
            if colecao == 'transacoes':
                _validar_referencias(conta_id, registro)
            if colecao == 'motoristas' and 'cpf' in dados:
                verificar_cpf(conta_id, registro.cpf, ignorar_id=registro.id)
    except (ValidationError, DuplicateError):
        db.session.rollback()
        raise
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.exception("Erro ao atualizar %s %s da conta %s", colecao, id, conta_id)
        raise StoreError(f"Erro ao atualizar {colecao}.") from e

    confirmar(conta_id, colecao)


def excluir(colecao, conta_id, id):
    _exigir_conta(conta_id)
    registro = obter(colecao, conta_id, id)
    db.session.delete(registro)
    confirmar(conta_id, colecao)
    logger.info("Registro %s excluído de %s (conta %s)", id, colecao, conta_id)
