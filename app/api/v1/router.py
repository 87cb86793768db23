from fastapi import APIRouter

from app.api.routers import account_types, accounts, attachments, rules, validators

api_router = APIRouter()

api_router.include_router(rules.router)
api_router.include_router(validators.router)
api_router.include_router(attachments.router)
api_router.include_router(account_types.router)
api_router.include_router(accounts.router)
