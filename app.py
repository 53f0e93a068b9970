import io
import logging
from typing import Optional

from fastapi import FastAPI, Depends, Header, Request, Response, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import qrcode

from config import BASE_URL, ADMIN_IDENTITY, TRANSITION_POLICY, configure_logging
from database import Base, engine, SessionLocal
from errors import (TraceChainError, Unauthorized, NotFound, AlreadyRegistered,
                    AlreadyVerified, InvalidInput, InvalidTransition)
from lifecycle import ProductStatus, Role
import schemas
from schemas import RegisterUser, RegisterProduct, UpdateStatus, ProductHistory
from service import TraceChain

configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="Smart Farm TraceChain", version="0.2.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

chain = TraceChain(SessionLocal, admin_identity=ADMIN_IDENTITY, policy=TRANSITION_POLICY)

# ---------- Dependencies ----------
def get_chain() -> TraceChain:
    return chain

def caller_identity(x_identity: str = Header(..., description="Authenticated caller identity")) -> str:
    return x_identity

@app.on_event("startup")
def on_startup():
    Base.metadata.create_all(bind=engine)

# ---------- Errors ----------
STATUS_CODES = [
    (Unauthorized, 403),
    (NotFound, 404),
    (AlreadyRegistered, 409),
    (AlreadyVerified, 409),
    (InvalidTransition, 409),
    (InvalidInput, 400),
]

@app.exception_handler(TraceChainError)
async def trace_chain_error(request: Request, exc: TraceChainError):
    status_code = next((code for cls, code in STATUS_CODES if isinstance(exc, cls)), 400)
    return JSONResponse(status_code=status_code, content={"detail": exc.message, "kind": exc.kind})

# ---------- APIs: users ----------
@app.post("/api/users", response_model=schemas.ParticipantOut, status_code=201)
def register_user(body: RegisterUser, identity: str = Depends(caller_identity),
                  tc: TraceChain = Depends(get_chain)):
    return tc.register_user(identity, body.name, body.role, body.location)

@app.post("/api/users/{target}/verify", response_model=schemas.ParticipantOut)
def verify_user(target: str, identity: str = Depends(caller_identity),
                tc: TraceChain = Depends(get_chain)):
    return tc.verify_user(identity, target)

@app.get("/api/users", response_model=schemas.UserList)
def list_users(tc: TraceChain = Depends(get_chain)):
    items = tc.list_users()
    return schemas.UserList(items=items, total=len(items))

@app.get("/api/users/stats/roles", response_model=schemas.RoleCounts)
def role_counts(tc: TraceChain = Depends(get_chain)):
    return schemas.RoleCounts(counts={role.value: n for role, n in tc.role_counts().items()})

@app.get("/api/users/{target}", response_model=schemas.ParticipantOut)
def get_user_info(target: str, tc: TraceChain = Depends(get_chain)):
    return tc.get_user_info(target)

# ---------- APIs: products ----------
@app.post("/api/products", response_model=schemas.ProductCreated, status_code=201)
def register_product(body: RegisterProduct, identity: str = Depends(caller_identity),
                     tc: TraceChain = Depends(get_chain)):
    product_id = tc.register_product(
        identity,
        name=body.name,
        variety=body.variety,
        farm_location=body.farm_location,
        is_organic=body.is_organic,
        batch_size=body.batch_size,
        certifications=body.certifications,
    )
    return schemas.ProductCreated(product_id=product_id)

@app.post("/api/products/{product_id}/status", response_model=schemas.HistoryEventOut)
def update_product_status(product_id: int, body: UpdateStatus,
                          identity: str = Depends(caller_identity),
                          tc: TraceChain = Depends(get_chain)):
    return tc.update_product_status(identity, product_id, body.new_status,
                                    body.location, body.action, body.additional_info)

@app.get("/api/products", response_model=schemas.ProductIds)
def list_products(
    farmer: Optional[str] = Query(None, description="only products registered by this farmer"),
    status: Optional[ProductStatus] = Query(None, description="only products currently in this status"),
    tc: TraceChain = Depends(get_chain),
):
    if farmer is None and status is None:
        items = tc.get_all_products()
    else:
        items = tc.find_products(farmer=farmer, status=status)
    return schemas.ProductIds(items=items, total=len(items))

@app.get("/api/products/{product_id}/history", response_model=ProductHistory)
def get_product_history(product_id: int, tc: TraceChain = Depends(get_chain)):
    product, events = tc.get_product_history(product_id)
    return ProductHistory(
        product=schemas.ProductOut.model_validate(product),
        history=[schemas.HistoryEventOut.model_validate(e) for e in events],
    )

@app.get("/api/products/{product_id}/organic", response_model=schemas.OrganicCheck)
def verify_organic(product_id: int, tc: TraceChain = Depends(get_chain)):
    return schemas.OrganicCheck(product_id=product_id, is_organic=tc.verify_organic(product_id))

@app.get("/api/products/{product_id}/verify", response_model=schemas.ChainCheck)
def verify_product_history(product_id: int, tc: TraceChain = Depends(get_chain)):
    verified, events = tc.check_product_history(product_id)
    return schemas.ChainCheck(product_id=product_id, verified=verified, events=events)

@app.get("/api/products/{product_id}/qrcode")
def product_qrcode(product_id: int, tc: TraceChain = Depends(get_chain)):
    tc.get_product(product_id)
    url = f"{BASE_URL}/api/products/{product_id}/history"
    img = qrcode.make(url)
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return Response(content=buf.getvalue(), media_type="image/png")

# ---------- Demo data ----------
@app.get("/api/seed")
def seed(tc: TraceChain = Depends(get_chain)):
    farmer = "farmer-demo"
    existing = tc.get_products_by_farmer(farmer)
    if existing:
        return {"status": "exists", "product_id": existing[0]}

    if farmer not in tc.list_users():
        tc.register_user(farmer, "Baan Mae Rim Farm", Role.FARMER, "Mae Rim, Chiang Mai")
    if not tc.get_user_info(farmer).verified:
        tc.verify_user(tc.admin_identity, farmer)
    product_id = tc.register_product(
        farmer,
        name="Hydro Lettuce",
        variety="Green Oak",
        farm_location="Mae Rim, Chiang Mai",
        is_organic=True,
        batch_size=500,
        certifications="GAP",
    )
    tc.update_product_status(farmer, product_id, ProductStatus.HARVESTED,
                             "Mae Rim, Chiang Mai", "Harvested crop", "morning harvest")
    logger.info("Seeded demo product %s", product_id)
    return {"status": "seeded", "product_id": product_id}
