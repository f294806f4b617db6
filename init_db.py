# init_db.py
import os

from app import app
from database import db
from models import Usuario


def criar_conta_inicial():
    with app.app_context():
        print("Criando todas as tabelas do banco de dados...")
        db.create_all()
        print("Tabelas criadas.")

        # Cria a conta de demonstração se não existir
        username = os.environ.get('CONTA_INICIAL', 'admin')
        if not Usuario.query.filter_by(username=username).first():
            print(f"Criando conta '{username}'...")
            usuario = Usuario(username=username, nome_empresa=os.environ.get('NOME_EMPRESA', 'Scala Frota'))
            usuario.set_password(os.environ.get('SENHA_INICIAL', 'admin123'))
            db.session.add(usuario)
            db.session.commit()
            print(f"Conta '{username}' criada com sucesso!")
        else:
            print(f"Conta '{username}' já existe.")


if __name__ == '__main__':
    criar_conta_inicial()
