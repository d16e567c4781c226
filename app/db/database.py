import os
import re
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool
from dotenv import load_dotenv

# Загружаем переменные окружения
load_dotenv()

# Получаем URL базы данных из переменных окружения или используем значение по умолчанию
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./rideshare.db")


def safe_url(url: str) -> str:
    """URL подключения без пароля, для логов"""
    match = re.match(r"(.*?)://(.*?):(.*?)@(.*)", url)
    if match:
        protocol, username, _, host_info = match.groups()
        return f"{protocol}://{username}@{host_info}"
    return url


def make_engine(url: str = DATABASE_URL):
    if url.startswith("sqlite"):
        # Одно соединение на процесс для базы в памяти
        if url in ("sqlite://", "sqlite:///:memory:"):
            return create_engine(url, connect_args={"check_same_thread": False}, poolclass=StaticPool)
        return create_engine(url, connect_args={"check_same_thread": False})
    return create_engine(url)


# Создание движка SQLAlchemy
engine = make_engine(DATABASE_URL)

# Создание сессии
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Создание базового класса для моделей
Base = declarative_base()


# Функция-зависимость для FastAPI
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
