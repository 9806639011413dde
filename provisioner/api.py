"""HTTP surface for the provisioning service."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .config import ProvisionerConfig, load_config
from .contracts import ProjectCreationRequest, RequestReceivedResponse, TemplateRequest
from .errors import ProvisionerError
from .provision import ResourceProvisioner
from .stacks import StackRunner
from .templates import TemplateCatalog
from .workflow import ProjectCreationWorkflow

logger = logging.getLogger(__name__)


def error_envelope(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code, content={"error": message, "statusCode": status_code}
    )


def create_app(
    config: Optional[ProvisionerConfig] = None,
    workflow: Optional[ProjectCreationWorkflow] = None,
    provisioner: Optional[ResourceProvisioner] = None,
    catalog: Optional[TemplateCatalog] = None,
) -> FastAPI:
    """Build the FastAPI application around the given (or default) services."""

    config = config or load_config()
    runner: Optional[StackRunner] = None
    if workflow is None or provisioner is None:
        runner = StackRunner(config=config)
    workflow = workflow or ProjectCreationWorkflow(runner, config=config)
    provisioner = provisioner or ResourceProvisioner(runner, config=config)
    catalog = catalog or TemplateCatalog(config.programs_dir)

    app = FastAPI(title="Provisioner", version=__version__)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[config.cors_origin],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.workflow = workflow
    app.state.provisioner = provisioner
    app.state.catalog = catalog

    @app.exception_handler(ProvisionerError)
    async def provisioner_error_handler(request: Request, exc: ProvisionerError) -> JSONResponse:
        logger.warning(f"{request.method} {request.url.path} failed: {exc.message}")
        return error_envelope(exc.status_code, exc.message)

    @app.get("/health")
    async def health() -> dict:
        return {"status": "healthy", "version": __version__}

    @app.post("/create-project", status_code=202)
    async def create_project(request: ProjectCreationRequest) -> JSONResponse:
        request_id = await workflow.submit(request)
        response = RequestReceivedResponse(
            project_name=request.project_name, request_id=request_id
        )
        return JSONResponse(status_code=202, content=response.model_dump(by_alias=True))

    @app.post("/create-project/sync")
    async def create_project_sync(request: ProjectCreationRequest) -> dict:
        outputs = await workflow.create_project(request)
        return {"outputs": outputs}

    @app.get("/create-project/status/{request_id}")
    async def create_project_status(request_id: int) -> JSONResponse:
        state = await workflow.get_state(request_id)
        return JSONResponse(content=state.model_dump(by_alias=True, mode="json"))

    @app.get("/templates")
    async def list_templates() -> list:
        return [t.model_dump() for t in catalog.list()]

    @app.get("/templates/{name}")
    async def get_template(name: str) -> dict:
        return catalog.get(name).model_dump()

    @app.post("/create-resource")
    async def create_resource(request: TemplateRequest) -> JSONResponse:
        result = await provisioner.provision(request)
        return JSONResponse(
            status_code=result.status_code,
            content=result.model_dump(by_alias=True, mode="json"),
        )

    @app.post("/provision", status_code=202)
    async def provision(request: TemplateRequest) -> JSONResponse:
        job_id = await provisioner.submit(request)
        return JSONResponse(status_code=202, content={"jobId": job_id})

    @app.get("/provision/{job_id}")
    async def provision_status(job_id: str) -> JSONResponse:
        job = await provisioner.get_job(job_id)
        return JSONResponse(content=job.model_dump(mode="json"))

    return app
