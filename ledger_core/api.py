"""
FastAPI REST API Module

Exposes account creation, deposits, withdrawals, transfers and account
queries. Every command is validated first; the ledger service then applies
it atomically. Runs on port 8090 by default.
"""

from datetime import datetime
from typing import Callable, Optional
from fastapi import FastAPI, HTTPException, Depends, Response, status
from fastapi.responses import JSONResponse
import uvicorn

from .config import LedgerConfig, get_config
from .exceptions import (
    AccountNotFound, DailyLimitExceeded, InsufficientFunds,
    InvalidArgument, LedgerError
)
from .logging_config import get_logger, setup_logging
from .schemas import (
    AccountResponse, AmountRequestModel, CreateAccountRequestModel,
    DailyTransfersResponse, TransferRequestModel
)
from .service import LedgerService
from .validation import (
    CreateAccountRequest, DepositRequest, TransferRequest, ValidationResult,
    WithdrawalRequest, coerce_kind, create_account_validator,
    deposit_validator, transfer_validator, withdrawal_validator
)

logger = get_logger("ledger.api")

# InvariantViolation is absent: it surfaces as a 500
HANDLED_ERRORS = (AccountNotFound, InsufficientFunds, DailyLimitExceeded, InvalidArgument)

# Process-wide service, built once at import
ledger_service = LedgerService.create()


def get_ledger_service() -> LedgerService:
    return ledger_service


def get_ledger_config() -> LedgerConfig:
    return get_config()


def get_clock() -> Callable[[], datetime]:
    return datetime.now


def _validation_problem(result: ValidationResult) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "title": "One or more validation errors occurred.",
            "status": status.HTTP_400_BAD_REQUEST,
            "errors": result.to_dict()
        }
    )


def _to_http_exception(error: LedgerError) -> HTTPException:
    """Map a ledger error kind to an HTTP status"""
    if isinstance(error, AccountNotFound):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, (InsufficientFunds, DailyLimitExceeded)):
        return HTTPException(status_code=422, detail=str(error))
    return HTTPException(status_code=400, detail=str(error))


def create_app() -> FastAPI:
    """Create and configure the FastAPI application"""
    app = FastAPI(
        title="Account Ledger API",
        description="Concurrent in-memory account ledger",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc"
    )

    @app.get("/health")
    def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "service": "ledger_api",
            "version": "1.0.0"
        }

    @app.post("/accounts", status_code=status.HTTP_201_CREATED)
    def create_account(
        request: CreateAccountRequestModel,
        response: Response,
        service: LedgerService = Depends(get_ledger_service),
        config: LedgerConfig = Depends(get_ledger_config)
    ):
        """Open an account"""
        command = CreateAccountRequest(
            holder_name=request.holder_name,
            cpf=request.cpf,
            kind=request.kind
        )
        result = create_account_validator(service, config).validate(command)
        if not result.is_valid:
            return _validation_problem(result)

        account = service.create_account(command.holder_name, command.cpf, coerce_kind(command.kind))
        response.headers["Location"] = f"/accounts/{account.account_number}"
        return AccountResponse.from_account(account).model_dump()

    @app.get("/accounts/{account_number}")
    def get_account(
        account_number: str,
        service: LedgerService = Depends(get_ledger_service)
    ):
        """Get account details"""
        account = service.find_account(account_number)
        if not account:
            raise HTTPException(status_code=404, detail="Account not found")
        return AccountResponse.from_account(account).model_dump()

    @app.get("/accounts/{account_number}/daily-transfers")
    def get_daily_transfers(
        account_number: str,
        service: LedgerService = Depends(get_ledger_service)
    ):
        """Outbound transfers committed today"""
        if not service.account_exists(account_number):
            raise HTTPException(status_code=404, detail="Account not found")
        today = service.today()
        return DailyTransfersResponse(
            account_number=account_number,
            date=today.isoformat(),
            total=str(service.get_daily_total(account_number, today))
        ).model_dump()

    @app.post("/accounts/{account_number}/deposit")
    def deposit(
        account_number: str,
        request: AmountRequestModel,
        service: LedgerService = Depends(get_ledger_service),
        config: LedgerConfig = Depends(get_ledger_config)
    ):
        """Make a deposit"""
        command = DepositRequest(account_number=account_number, amount=request.to_decimal())
        result = deposit_validator(service, config).validate(command)
        if not result.is_valid:
            return _validation_problem(result)

        try:
            account = service.deposit(command.account_number, command.amount)
        except HANDLED_ERRORS as e:
            raise _to_http_exception(e)
        return AccountResponse.from_account(account).model_dump()

    @app.post("/accounts/{account_number}/withdraw")
    def withdraw(
        account_number: str,
        request: AmountRequestModel,
        service: LedgerService = Depends(get_ledger_service),
        config: LedgerConfig = Depends(get_ledger_config),
        clock: Callable[[], datetime] = Depends(get_clock)
    ):
        """Make a withdrawal"""
        command = WithdrawalRequest(account_number=account_number, amount=request.to_decimal())
        result = withdrawal_validator(service, config, clock).validate(command)
        if not result.is_valid:
            return _validation_problem(result)

        try:
            account = service.withdraw(command.account_number, command.amount)
        except HANDLED_ERRORS as e:
            raise _to_http_exception(e)
        return AccountResponse.from_account(account).model_dump()

    @app.post("/transfers")
    def transfer(
        request: TransferRequestModel,
        service: LedgerService = Depends(get_ledger_service),
        config: LedgerConfig = Depends(get_ledger_config),
        clock: Callable[[], datetime] = Depends(get_clock)
    ):
        """Make a transfer between accounts"""
        command = TransferRequest(
            source_account=request.source_account,
            destination_account=request.destination_account,
            amount=request.to_decimal(),
            description=request.description
        )
        result = transfer_validator(service, config, clock).validate(command)
        if not result.is_valid:
            return _validation_problem(result)

        try:
            service.transfer(command.source_account, command.destination_account, command.amount)
        except HANDLED_ERRORS as e:
            raise _to_http_exception(e)
        return {"message": "Transfer completed successfully"}

    return app


app = create_app()


def run_server(host: Optional[str] = None, port: Optional[int] = None, debug: bool = False):
    """Run the FastAPI server"""
    config = get_config()
    setup_logging(config.log_level, log_format=config.log_format, log_file=config.log_file)
    logger.info("Starting ledger API")
    uvicorn.run(
        "ledger_core.api:app",
        host=host or config.api_host,
        port=port or config.api_port,
        reload=debug,
        log_level=config.log_level.lower()
    )
