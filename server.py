from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from filter_sync import QueryCanonicalizer, RequestParams, load_sample_catalog, parse_query
from filter_sync.errors import ApiError
from filter_sync.logger import get_logger
from filter_sync.models import CategoryNode
from filter_sync.utils import serialize_criteria, serialize_meta

logger = get_logger("server")

app = FastAPI()

# Enable CORS for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, specify the exact origin
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class CriteriaResponse(BaseModel):
    query: str
    criteria: Dict[str, Any]


class MetaModel(BaseModel):
    total: int
    filtered: int
    page: int
    pageSize: int
    totalPages: int
    hasNext: bool
    hasPrev: bool


class FilterResponse(BaseModel):
    data: List[Dict[str, Any]]
    meta: MetaModel
    query: str


class CategoryModel(BaseModel):
    id: str
    name: str
    parentId: Optional[str] = None
    children: List["CategoryModel"] = []


CategoryModel.model_rebuild()


# Shared sample catalog; read-only after startup.
catalog, hierarchy = load_sample_catalog()


def _category_model(node: CategoryNode) -> CategoryModel:
    return CategoryModel(
        id=node.id,
        name=node.name,
        parentId=node.parent_id,
        children=[_category_model(child) for child in node.children],
    )


def _raw_query(request: Request) -> str:
    raw = request.url.query
    return f"?{raw}" if raw else ""


@app.get("/")
async def root():
    return {"status": "Catalog filter API is running", "docs": "/docs"}


@app.get("/health")
async def health_check():
    return {"status": "ok"}


@app.get("/categories", response_model=List[CategoryModel])
async def categories():
    return [_category_model(node) for node in hierarchy.tree]


@app.get("/filters/canonical", response_model=CriteriaResponse)
async def canonical(request: Request):
    criteria = parse_query(_raw_query(request), hierarchy)
    return CriteriaResponse(query=QueryCanonicalizer().encode(criteria), criteria=serialize_criteria(criteria))


@app.get("/products/filter", response_model=FilterResponse)
async def filter_products(request: Request):
    criteria = parse_query(_raw_query(request), hierarchy)
    try:
        page = await catalog.search(RequestParams.from_criteria(criteria))
    except ApiError as e:
        raise HTTPException(status_code=e.status, detail=e.message)
    except Exception as e:
        logger.error("Filter request failed: %s", e)
        raise HTTPException(status_code=500, detail=str(e))
    return FilterResponse(
        data=page.data,
        meta=MetaModel(**serialize_meta(page.meta)),
        query=QueryCanonicalizer().encode(criteria),
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
