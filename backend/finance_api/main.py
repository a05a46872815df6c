"""
FastAPI application entry point.
"""

import logging
from datetime import date, timedelta
from typing import List, Optional

from fastapi import FastAPI, Depends, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlmodel import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import crud, ledger
from .auth import (
    get_password_hash,
    authenticate_user,
    create_access_token,
    get_current_user
)
from .config import settings
from .database import create_db_and_tables, get_session
from .errors import InvalidCredentials, LedgerError, NotFound, ValidationError
from .models import User
from .ownership import get_owned_transaction
from .report import build_monthly_report, month_key
from .schemas import (
    BudgetResponse,
    BudgetSet,
    LoginResponse,
    MessageResponse,
    MonthlyReport,
    RegisterResponse,
    TransactionCreate,
    TransactionCreated,
    TransactionDeleted,
    TransactionResponse,
    TransactionUpdate,
    TransactionUpdated,
    UserCreate,
    UserLogin,
    WalletCreate,
    WalletResponse,
)


logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Wallet Ledger API - wallets, transactions, budgets and monthly reports"
)


# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================
# Error rendering: every failure is {"message": ...}
# ============================================

@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError):
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    error = ValidationError()
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ())[1:])
        error = ValidationError(f"{field}: {first.get('msg')}" if field else first.get("msg"))
    return await ledger_error_handler(request, error)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"message": "Server error."})


# Create database tables on startup
@app.on_event("startup")
def on_startup():
    """Create database tables on application startup."""
    create_db_and_tables()
    logger.info("Database tables created")


# Root endpoint
@app.get("/", tags=["Root"])
def read_root():
    """Root endpoint - API information."""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running",
        "docs": "/docs"
    }


# Health check endpoint
@app.get("/health", tags=["Root"])
def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


# ============================================
# Authentication Endpoints
# ============================================

@app.post("/api/auth/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED, tags=["Authentication"])
def register(
    user_data: UserCreate,
    session: Session = Depends(get_session)
):
    """Register a new user."""
    user = crud.create_user(session, user_data.email, get_password_hash(user_data.password))
    return {"message": "User registered successfully.", "user_id": user.id}


@app.post("/api/auth/login", response_model=LoginResponse, tags=["Authentication"])
def login(
    credentials: UserLogin,
    session: Session = Depends(get_session)
):
    """Login and get a signed access token."""
    user = authenticate_user(session, credentials.email.strip().lower(), credentials.password)
    if not user:
        raise InvalidCredentials()

    access_token = create_access_token(
        data={"id": user.id, "email": user.email},
        expires_delta=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    return {"message": "Login successful.", "token": access_token}


# ============================================
# Wallet Endpoints
# ============================================

@app.post("/api/wallets", response_model=WalletResponse, status_code=status.HTTP_201_CREATED, tags=["Wallets"])
def create_wallet(
    wallet_data: WalletCreate,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session)
):
    """Create a wallet with a zero balance."""
    return crud.create_wallet(session, current_user.id, wallet_data.name)


@app.get("/api/wallets", response_model=List[WalletResponse], tags=["Wallets"])
def read_wallets(
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session)
):
    """List the current user's wallets."""
    return crud.get_wallets_by_user(session, current_user.id)


@app.delete("/api/wallets/{wallet_id}", response_model=MessageResponse, tags=["Wallets"])
def delete_wallet(
    wallet_id: int,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session)
):
    """Delete a wallet and all of its transactions."""
    crud.delete_wallet(session, current_user.id, wallet_id)
    return {"message": "Wallet deleted successfully."}


@app.post("/api/wallets/{wallet_id}/reconcile", response_model=WalletResponse, tags=["Wallets"])
def reconcile_wallet(
    wallet_id: int,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session)
):
    """Recompute a wallet's balance from its transaction history."""
    return ledger.reconcile_wallet(session, current_user.id, wallet_id)


# ============================================
# Transaction Endpoints
# ============================================

@app.post("/api/transactions", response_model=TransactionCreated, status_code=status.HTTP_201_CREATED, tags=["Transactions"])
def create_transaction(
    transaction_data: TransactionCreate,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session)
):
    """Record a transaction and update its wallet balance."""
    transaction, new_balance = ledger.create_transaction(session, current_user.id, transaction_data)
    return {
        "message": "Transaction added successfully.",
        "transaction": TransactionResponse.model_validate(transaction),
        "new_balance": new_balance,
    }


@app.get("/api/transactions", response_model=List[TransactionResponse], tags=["Transactions"])
def read_transactions(
    wallet_id: Optional[int] = Query(None, alias="walletId"),
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session)
):
    """List the current user's transactions, newest first."""
    return crud.get_transactions_by_user(
        session,
        current_user.id,
        wallet_id=wallet_id,
        start_date=start_date,
        end_date=end_date
    )


@app.get("/api/transactions/{transaction_id}", response_model=TransactionResponse, tags=["Transactions"])
def read_transaction(
    transaction_id: int,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session)
):
    """Get a specific transaction by ID."""
    transaction = get_owned_transaction(session, transaction_id, current_user.id)
    if not transaction:
        raise NotFound("Transaction not found.")
    return transaction


@app.put("/api/transactions/{transaction_id}", response_model=TransactionUpdated, tags=["Transactions"])
def update_transaction(
    transaction_id: int,
    transaction_data: TransactionUpdate,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session)
):
    """Replace a transaction, moving its amount between wallets if needed."""
    transaction = ledger.update_transaction(session, current_user.id, transaction_id, transaction_data)
    return {
        "message": "Transaction updated successfully.",
        "transaction": TransactionResponse.model_validate(transaction),
    }


@app.delete("/api/transactions/{transaction_id}", response_model=TransactionDeleted, tags=["Transactions"])
def delete_transaction(
    transaction_id: int,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session)
):
    """Delete a transaction and revert it from its wallet."""
    new_balance = ledger.delete_transaction(session, current_user.id, transaction_id)
    return {"message": "Transaction deleted successfully.", "new_balance": new_balance}


# ============================================
# Budget Endpoints
# ============================================

@app.post("/api/budgets", response_model=MessageResponse, tags=["Budgets"])
def set_budget(
    budget_data: BudgetSet,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session)
):
    """Set or update the budget for a category and month (default: this month)."""
    month = budget_data.month or month_key(date.today())
    _, created = crud.upsert_budget(
        session, current_user.id, budget_data.category, budget_data.amount, month
    )
    if created:
        return JSONResponse(
            status_code=status.HTTP_201_CREATED,
            content={"message": "Budget set successfully."}
        )
    return {"message": "Budget updated successfully."}


@app.get("/api/budgets", response_model=List[BudgetResponse], tags=["Budgets"])
def read_budgets(
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session)
):
    """This month's budgets for the current user."""
    return crud.get_budgets_for_month(session, current_user.id, month_key(date.today()))


# ============================================
# Report Endpoint
# ============================================

@app.get("/api/report", response_model=MonthlyReport, tags=["Report"])
def read_report(
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session)
):
    """Income, expenses, savings and budget status for the current month."""
    return build_monthly_report(session, current_user.id)


def run():
    """Serve the app with uvicorn on the configured host and port."""
    import uvicorn
    uvicorn.run("finance_api.main:app", host=settings.HOST, port=settings.PORT, reload=settings.DEBUG)


if __name__ == "__main__":
    run()
