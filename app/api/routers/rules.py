from fastapi import APIRouter

from app.schemas.validator import Rule
from app.validation import RuleRegistry

router = APIRouter(prefix="/rules", tags=["rules"])


@router.get("", response_model=list[Rule])
def get_rules():
    """List the rule keys a validator callback can reference."""
    return [
        Rule(
            key=registered.key,
            triggers=sorted(registered.triggers) if registered.triggers is not None else None,
            description=registered.description,
            params_schema=(
                registered.params_model.model_json_schema()
                if registered.params_model is not None
                else None
            ),
        )
        for registered in RuleRegistry.list_registered()
    ]
