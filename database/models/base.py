from sqlalchemy.orm import declarative_base

Base = declarative_base()

# Must match llm.embedding_dimensions in config.yaml
EMBEDDING_DIMENSIONS = 768
