# app.py
import os
import logging
from datetime import datetime

from dotenv import load_dotenv
from flask import Flask, request, jsonify, Response
from flask_login import LoginManager, login_user, logout_user, login_required, current_user

# Importações locais
from database import db
from models import Usuario, CATEGORIAS, agora_utc
from erros import (
    executar, DuplicateError, InvalidStateError, NotFoundError,
    PartialCompletionError, StoreError, ValidationError,
)
from metricas import metricas_locacao, metricas_viagem
import agregacao
import backup
import ciclo_vida
import relatorios
import repositorio

load_dotenv()
basedir = os.path.abspath(os.path.dirname(__file__))

app = Flask(__name__)
# CONFIGURAÇÕES
app.config['SECRET_KEY'] = os.environ.get('SECRET_KEY', 'uma-chave-secreta-muito-dificil-de-adivinhar')
app.config['SQLALCHEMY_DATABASE_URI'] = os.environ.get('DATABASE_URL') or 'sqlite:///' + os.path.join(basedir, 'scala.db')
app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False

logging.basicConfig(
    level=os.environ.get('LOG_LEVEL', 'INFO').upper(),
    format='%(asctime)s %(levelname)s [%(name)s] %(message)s',
)

# Inicializa as extensões com o app
db.init_app(app)

login_manager = LoginManager()
login_manager.init_app(app)


@login_manager.user_loader
def load_user(user_id):
    return db.session.get(Usuario, int(user_id))


@login_manager.unauthorized_handler
def nao_autorizado():
    return jsonify({'erro': 'Por favor, faça o login para acessar este recurso.'}), 401


# --- FUNÇÕES AUXILIARES ---
# A ordem importa: subclasses antes das classes base.
STATUS_HTTP = (
    (ValidationError, 400),
    (DuplicateError, 409),
    (NotFoundError, 404),
    (InvalidStateError, 409),
    (PartialCompletionError, 500),
    (StoreError, 503),
)


def resposta_erro(erro):
    status = next((codigo for classe, codigo in STATUS_HTTP if isinstance(erro, classe)), 500)
    if status >= 500:
        app.logger.error("Falha na operação: %s", erro.mensagem)
    return jsonify({'erro': erro.mensagem, 'tipo': type(erro).__name__, 'campo': erro.campo}), status


def responder(resultado, status=200, conversor=None):
    if not resultado.ok:
        return resposta_erro(resultado.erro)
    valor = conversor(resultado.valor) if conversor else resultado.valor
    return jsonify(valor), status


def conta_atual():
    return current_user.id if current_user.is_authenticated else None


def registro_com_metricas(colecao, registro):
    dados = registro.para_dict()
    if colecao == 'viagens':
        dados['metricas'] = metricas_viagem(registro)
    elif colecao == 'locacoes':
        dados['metricas'] = metricas_locacao(registro)
    return dados


def filtros_da_consulta():
    return {
        'periodo': request.args.get('periodo', 'all'),
        'id_caminhao': request.args.get('caminhao', type=int),
        'id_motorista': request.args.get('motorista', type=int),
        'id_viagem': request.args.get('viagem', type=int),
    }


def corpo_json():
    dados = request.get_json(silent=True)
    return dados if isinstance(dados, dict) else None


# --- ROTAS DE AUTENTICAÇÃO ---
@app.route('/registrar', methods=['POST'])
def registrar():
    dados = corpo_json() or request.form
    username = (dados.get('username') or '').strip()
    password = dados.get('password') or ''
    if not username or len(password) < 6:
        return jsonify({'erro': 'Informe um usuário e uma senha com pelo menos 6 caracteres.'}), 400
    if Usuario.query.filter_by(username=username).first():
        return jsonify({'erro': 'Usuário já cadastrado.'}), 409

    usuario = Usuario(username=username, nome_empresa=dados.get('nome_empresa'))
    usuario.set_password(password)
    db.session.add(usuario)
    db.session.commit()
    login_user(usuario)
    app.logger.info("Conta %s criada", usuario.id)
    return jsonify({'id': usuario.id, 'username': usuario.username, 'nome_empresa': usuario.nome_empresa}), 201


@app.route('/login', methods=['POST'])
def login():
    dados = corpo_json() or request.form
    user = Usuario.query.filter_by(username=dados.get('username')).first()
    if user and user.check_password(dados.get('password') or ''):
        login_user(user)
        return jsonify({'id': user.id, 'username': user.username, 'nome_empresa': user.nome_empresa})
    return jsonify({'erro': 'Usuário ou senha inválidos.'}), 401


@app.route('/logout')
@login_required
def logout():
    logout_user()
    return jsonify({'mensagem': 'Você foi desconectado com sucesso.'})


@app.route('/sessao')
def sessao():
    if not current_user.is_authenticated:
        return jsonify({'autenticado': False})
    return jsonify({
        'autenticado': True,
        'id': current_user.id,
        'username': current_user.username,
        'nome_empresa': current_user.nome_empresa,
    })


# --- ROTAS DE CRUD (FROTA, MOTORISTAS, VIAGENS, ETC.) ---
@app.route('/api/categorias')
@login_required
def categorias():
    return jsonify(CATEGORIAS)


@app.route('/api/<colecao>', methods=['GET'])
@login_required
def listar(colecao):
    resultado = executar(repositorio.listar, colecao, conta_atual())
    return responder(resultado, conversor=lambda registros: [registro_com_metricas(colecao, r) for r in registros])


@app.route('/api/<colecao>', methods=['POST'])
@login_required
def adicionar(colecao):
    dados = corpo_json()
    if dados is None:
        return jsonify({'erro': 'Envie os dados em JSON.'}), 400
    resultado = executar(repositorio.criar, colecao, conta_atual(), dados)
    return responder(resultado, 201, conversor=lambda id: {'id': id})


@app.route('/api/<colecao>/<int:id>', methods=['GET'])
@login_required
def detalhar(colecao, id):
    resultado = executar(repositorio.obter, colecao, conta_atual(), id)
    return responder(resultado, conversor=lambda r: registro_com_metricas(colecao, r))


@app.route('/api/<colecao>/<int:id>', methods=['PUT', 'PATCH'])
@login_required
def editar(colecao, id):
    dados = corpo_json()
    if dados is None:
        return jsonify({'erro': 'Envie os dados em JSON.'}), 400
    resultado = executar(repositorio.atualizar, colecao, conta_atual(), id, dados)
    return responder(resultado, conversor=lambda _: {'ok': True})


@app.route('/api/<colecao>/<int:id>', methods=['DELETE'])
@login_required
def excluir(colecao, id):
    resultado = executar(repositorio.excluir, colecao, conta_atual(), id)
    return responder(resultado, conversor=lambda _: {'ok': True})


@app.route('/api/viagens/<int:id>/concluir', methods=['POST'])
@login_required
def concluir_viagem(id):
    dados = corpo_json() or {}
    resultado = executar(
        ciclo_vida.concluir_viagem, conta_atual(), id,
        local_fim=dados.get('local_fim'),
        km_final=dados.get('km_final'),
        data_fim=dados.get('data_fim'),
        hora_fim=dados.get('hora_fim'),
        litros_combustivel=dados.get('litros_combustivel', 0),
    )
    return responder(resultado, conversor=lambda v: registro_com_metricas('viagens', v))


@app.route('/api/locacoes/<int:id>/concluir', methods=['POST'])
@login_required
def concluir_locacao(id):
    dados = corpo_json() or {}
    resultado = executar(
        ciclo_vida.concluir_locacao, conta_atual(), id,
        local_fim=dados.get('local_fim'),
        horimetro_final=dados.get('horimetro_final'),
        data_fim=dados.get('data_fim'),
    )
    return responder(resultado, conversor=lambda loc: registro_com_metricas('locacoes', loc))


# --- ROTAS PRINCIPAIS ---
@app.route('/api/painel')
@login_required
def painel():
    conta = conta_atual()
    filtros = filtros_da_consulta()

    def montar():
        return agregacao.painel(
            repositorio.listar('caminhoes', conta), repositorio.listar('motoristas', conta),
            repositorio.listar('maquinas', conta), repositorio.listar('viagens', conta),
            repositorio.listar('locacoes', conta), repositorio.listar('transacoes', conta),
            **filtros,
        )
    return responder(executar(montar))


# --- ROTAS DE RELATÓRIOS ---
@app.route('/relatorios/<tipo>')
@login_required
def relatorio(tipo):
    resultado = executar(relatorios.montar_relatorio, tipo, conta_atual(), **filtros_da_consulta())
    if not resultado.ok:
        return resposta_erro(resultado.erro)
    try:
        pdf = relatorios.gerar_pdf(resultado.valor, nome_empresa=current_user.nome_empresa)
    except Exception:
        app.logger.exception("--- ERRO AO GERAR RELATÓRIO '%s' ---", tipo)
        return jsonify({'erro': 'Ocorreu um erro ao gerar o relatório. Tente novamente.'}), 500
    nome_arquivo = f"relatorio-{tipo}-{agora_utc():%Y-%m-%d}.pdf"
    return Response(pdf, mimetype='application/pdf', headers={'Content-Disposition': f'attachment;filename={nome_arquivo}'})


# --- ROTAS DE BACKUP ---
@app.route('/backup', methods=['GET'])
@login_required
def baixar_backup():
    resultado = executar(backup.exportar_backup, conta_atual())
    if not resultado.ok:
        return resposta_erro(resultado.erro)
    resposta = jsonify(resultado.valor)
    empresa = (current_user.nome_empresa or current_user.username).replace(' ', '_')
    resposta.headers['Content-Disposition'] = f'attachment;filename=backup-{empresa}-{datetime.now():%Y-%m-%d}.json'
    return resposta


@app.route('/backup', methods=['POST'])
@login_required
def restaurar_backup():
    dados = corpo_json()
    if dados is None:
        return jsonify({'erro': 'Envie o arquivo de backup em JSON.'}), 400
    return responder(executar(backup.importar_backup, conta_atual(), dados), 201)


@app.route('/backup', methods=['DELETE'])
@login_required
def limpar_backup():
    return responder(executar(backup.limpar_dados, conta_atual()), conversor=lambda _: {'ok': True})


if __name__ == '__main__':
    app.run(debug=os.environ.get('FLASK_DEBUG') == '1')
