from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from app.domains.transactions.routes import router as transaction_router
from app.domains.transactions.services import TransactionService
from app.config.mongodb import mongodb
from app.config.setting import settings
import logging
from dotenv import load_dotenv

load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s - %(message)s"
)

logger = logging.getLogger(__name__)

app = FastAPI(title=settings.app_name)

logger.info(f"Allowed origins: {settings.parsed_origins}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.parsed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def startup():
    try:
        await mongodb.init_db()
        collection = mongodb.get_collection("transactions")
        service = TransactionService(collection)
        await service.ensure_indexes()
        count = await collection.estimated_document_count()
        logger.info(f"MongoDB connected. Found {count} documents in 'transactions' collection.")
    except Exception as e:
        logger.error(f"MongoDB connection failed: {str(e)}")
        raise

    app.state.transaction_service = service


@app.on_event("shutdown")
def shutdown_db():
    mongodb.close()


@app.get("/health")
async def health():
    return {"status": "ok"}


app.include_router(transaction_router, prefix="/api", tags=["Transaction"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=settings.environment == "development")
