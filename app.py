import logging

from flask import Flask, jsonify

from tinydb import TinyDB
from tinydb.storages import MemoryStorage

from cangkulan.config import Settings
from cangkulan.storage import SecretStore, TinyKeyValueStore

from cangkulan_routes import zk_bp, init_zk_bp


def create_app(settings=None, db=None):
    """개발용 Flask 앱을 만든다.

    Args:
        settings: Settings (생략하면 환경 변수에서 읽음)
        db: TinyDB 인스턴스 (생략하면 settings.db_path 파일 DB)
    """
    settings = settings or Settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if db is None:
        # db = TinyDB(storage=MemoryStorage) #Memory DB
        db = TinyDB(settings.db_path)        #Storage DB

    store = SecretStore(TinyKeyValueStore(db), salt=settings.storage_salt,
                        encrypt=settings.storage_encrypt)

    app = Flask(__name__)
    app.config["CANGKULAN_SETTINGS"] = settings
    app.config["CANGKULAN_STORE"] = store

    init_zk_bp(store)
    app.register_blueprint(zk_bp)

    @app.route("/")
    def index():
        return jsonify({"service": "cangkulan-zk", "env": settings.app_env})

    return app


def create_test_app():
    """메모리 DB를 쓰는 앱."""
    return create_app(Settings(storage_encrypt=True), db=TinyDB(storage=MemoryStorage))


if __name__ == "__main__":
    create_app().run(debug=True)
