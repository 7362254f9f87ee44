from fastapi import APIRouter, Depends, HTTPException

from aiwe.api.dependencies import get_engine
from aiwe.api.schemas import ExecuteCommandRequest, ExecuteCommandResponse
from aiwe.application.engine import AiweEngine

router = APIRouter()


@router.post("/execute-command", response_model=ExecuteCommandResponse)
async def execute_command(
    request: ExecuteCommandRequest, engine: AiweEngine = Depends(get_engine)
):
    """Process a natural-language command within a session.

    Engine errors are part of the conversational response; only unexpected
    failures produce a 500.
    """
    if not request.command.strip():
        raise HTTPException(status_code=400, detail="Command is required")

    try:
        result = await engine.process_instruction(
            request.command, session_id=request.session_id
        )
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))

    return ExecuteCommandResponse(
        session_id=result.session_id,
        status=result.status,
        response=result.response,
        execution_results=result.execution_results,
    )
