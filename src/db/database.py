import os
from dotenv import load_dotenv
from sqlalchemy import create_engine, text
from sqlalchemy.orm import declarative_base, sessionmaker, scoped_session
import logging

# Load environment variables
load_dotenv()

Base = declarative_base()

DEFAULT_DB_URL = "sqlite:///data/trading.db"

class DatabaseConnection:
    def __init__(self, db_url: str = None):
        self.logger = logging.getLogger(__name__)
        self.db_url = db_url or os.getenv('DB_URL') or DEFAULT_DB_URL
        self.engine = self._create_engine()
        self.Session = self._create_session()

    def _create_engine(self):
        try:
            if self.db_url.startswith("sqlite"):
                path = self.db_url.replace("sqlite:///", "", 1)
                if path and path != self.db_url and path != ":memory:":
                    directory = os.path.dirname(path)
                    if directory:
                        os.makedirs(directory, exist_ok=True)
                return create_engine(self.db_url, echo=False)

            return create_engine(
                self.db_url,
                pool_size=5,                # Connection pool size
                max_overflow=10,            # Max extra connections
                pool_timeout=30,            # Seconds to wait for connection
                pool_recycle=1800,          # Recycle connections after 30 mins
                echo=False                  # Set to True for SQL logging
            )
        except Exception as e:
            self.logger.error(f"Failed to create database engine: {str(e)}")
            raise

    def _create_session(self):
        """Create a scoped session factory"""
        return scoped_session(sessionmaker(
            bind=self.engine,
            autoflush=False
        ))

    def get_session(self):
        """Get a new database session"""
        return self.Session()

    def test_connection(self):
        """Test database connection"""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
                self.logger.info("Successfully connected to the database")
                return True
        except Exception as e:
            self.logger.error(f"Failed to connect to database: {str(e)}")
            return False

    def init_db(self):
        """Initialize database tables"""
        try:
            Base.metadata.create_all(self.engine)
            self.logger.info("Database tables created successfully")
        except Exception as e:
            self.logger.error(f"Failed to create database tables: {str(e)}")
            raise
