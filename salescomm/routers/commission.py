"""FastAPI router for commission computation, rule lookup and period reports."""
from functools import lru_cache
from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, File, HTTPException, Path, Response, UploadFile, status
from pydantic import BaseModel, ConfigDict, Field

from ..config.config_manager import ConfigManager, save_rule_set
from ..core.linker import link_expenses
from ..core.pipeline import compute_period
from ..core.resolver import extract_rep_name, resolve_rep_name
from ..core.snapshots import SnapshotStore
from ..export.excel_pack import export_period_report
from ..models.schemas import (
    BetaMapping,
    CommissionReport,
    ExpenseRecord,
    GoodsSalesRecord,
    PeriodSnapshot,
    PersonSalesRecord,
    RuleSet,
    SavedReportMetadata,
)
from ..utils.excel_utils import (
    load_uploaded_data,
    parse_expenses,
    parse_goods_sales,
    parse_person_sales,
)

router = APIRouter(prefix="/v1", tags=["commission"])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@lru_cache
def get_config() -> ConfigManager:
    return ConfigManager()


def get_store(config: ConfigManager = Depends(get_config)) -> SnapshotStore:
    return SnapshotStore(config.snapshot_dir)


def _xlsx(content: bytes, filename: str) -> Response:
    return Response(
        content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# ---------- Ingestion ----------

class ParsedLedgers(BaseModel):
    person_sales: List[PersonSalesRecord] = []
    goods_sales: List[GoodsSalesRecord] = []
    expenses: List[ExpenseRecord] = []


async def _read_upload(upload: Optional[UploadFile]):
    if upload is None:
        return None
    return load_uploaded_data(await upload.read(), upload.filename or "")


@router.post("/ledgers/parse", response_model=ParsedLedgers)
async def parse_ledgers(
    person_sales: Optional[UploadFile] = File(None),
    goods_sales: Optional[UploadFile] = File(None),
    expenses: Optional[UploadFile] = File(None),
) -> ParsedLedgers:
    """Parse accounting exports (Excel or CSV) into ledger records.

    Any subset of the three files may be sent; a sheet missing a required
    column is rejected with 400.
    """
    parsed = ParsedLedgers()
    frame = await _read_upload(person_sales)
    if frame is not None:
        parsed.person_sales = parse_person_sales(frame)
    frame = await _read_upload(goods_sales)
    if frame is not None:
        parsed.goods_sales = parse_goods_sales(frame)
    frame = await _read_upload(expenses)
    if frame is not None:
        parsed.expenses = parse_expenses(frame)
    return parsed


# ---------- Name resolution & linking ----------

class ResolveNameRequest(BaseModel):
    raw_label: str = Field(..., examples=["گروه بتا (مشتری John Doe)"])
    is_proxy_channel: bool = True
    beta_mappings: Optional[List[BetaMapping]] = None


class ResolveNameResponse(BaseModel):
    extracted_name: str
    resolved_name: str

    model_config = ConfigDict(json_schema_extra={
        "example": {"extracted_name": "John Doe", "resolved_name": "Real Rep"},
    })


@router.post("/commission/resolve-name", response_model=ResolveNameResponse)
async def resolve_name(
    payload: ResolveNameRequest,
    config: ConfigManager = Depends(get_config),
) -> ResolveNameResponse:
    """Resolve a subgroup label; configured mappings apply when none are sent."""
    mappings = payload.beta_mappings
    if mappings is None:
        mappings = config.rule_set.beta_mappings
    return ResolveNameResponse(
        extracted_name=extract_rep_name(payload.raw_label),
        resolved_name=resolve_rep_name(payload.raw_label, payload.is_proxy_channel, mappings),
    )


class LinkExpensesRequest(BaseModel):
    expenses: List[ExpenseRecord] = []
    person_sales: List[PersonSalesRecord] = []


@router.post("/commission/link-expenses", response_model=List[ExpenseRecord])
async def link(payload: LinkExpensesRequest) -> List[ExpenseRecord]:
    """Attach expenses to their customer's subgroup label; unlinkable ones are dropped."""
    return link_expenses(payload.expenses, payload.person_sales)


# ---------- Computation ----------

def _with_configured_rules(snapshot: PeriodSnapshot, config: ConfigManager, use_configured: bool) -> PeriodSnapshot:
    if not use_configured:
        return snapshot
    return snapshot.with_rules(config.rule_set)


@router.post("/commission/compute", response_model=CommissionReport)
async def compute(
    snapshot: PeriodSnapshot,
    use_configured_rules: bool = False,
    config: ConfigManager = Depends(get_config),
) -> CommissionReport:
    """Compute rep and manager commission for the supplied period inputs.

    With ``use_configured_rules`` the snapshot's profiles, hierarchy and
    mappings are replaced by the configured rule set.
    """
    snapshot = _with_configured_rules(snapshot, config, use_configured_rules)
    return compute_period(snapshot, target_prefix=config.target_prefix)


@router.post(
    "/commission/export/excel",
    responses={200: {"content": {XLSX_MEDIA_TYPE: {}}, "description": "Binary Excel workbook"}},
)
async def export_excel(
    snapshot: PeriodSnapshot,
    use_configured_rules: bool = False,
    config: ConfigManager = Depends(get_config),
) -> Response:
    """Generate the four-sheet commission report workbook."""
    snapshot = _with_configured_rules(snapshot, config, use_configured_rules)
    content = export_period_report(snapshot, target_prefix=config.target_prefix)
    return _xlsx(content, "commission_report.xlsx")


@router.get("/config/rules", response_model=RuleSet)
async def configured_rules(config: ConfigManager = Depends(get_config)) -> RuleSet:
    """Return the configured profiles, managers, rep settings and mappings."""
    return config.rule_set


@router.put("/config/rules", response_model=RuleSet)
async def update_rules(rules: RuleSet, config: ConfigManager = Depends(get_config)) -> RuleSet:
    """Replace the configured rule set and write it back to the YAML file.

    The cached configuration is updated in place, so later requests compute
    with the new profiles and mappings.
    """
    save_rule_set(config, rules)
    return config.rule_set


# ---------- Stored periods ----------

Year = Annotated[int, Path(gt=0, examples=[1403])]
Month = Annotated[int, Path(ge=1, le=12, examples=[7])]


@router.get("/reports", response_model=List[SavedReportMetadata])
def list_reports(store: SnapshotStore = Depends(get_store)) -> List[SavedReportMetadata]:
    return store.list_reports()


@router.put("/reports/{year}/{month}", response_model=SavedReportMetadata)
def save_report(
    snapshot: PeriodSnapshot,
    year: Year,
    month: Month,
    store: SnapshotStore = Depends(get_store),
) -> SavedReportMetadata:
    """Store the period's inputs, configuration included, for later replay."""
    try:
        return store.save(year, month, snapshot)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


def _load(store: SnapshotStore, year: int, month: int) -> PeriodSnapshot:
    try:
        return store.load(year, month)
    except FileNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))


@router.get("/reports/{year}/{month}", response_model=PeriodSnapshot)
def get_report(
    year: Year,
    month: Month,
    store: SnapshotStore = Depends(get_store),
) -> PeriodSnapshot:
    return _load(store, year, month)


@router.get("/reports/{year}/{month}/commission", response_model=CommissionReport)
def replay_report(
    year: Year,
    month: Month,
    store: SnapshotStore = Depends(get_store),
    config: ConfigManager = Depends(get_config),
) -> CommissionReport:
    """Recompute a stored period with the rules stored alongside it."""
    snapshot = _load(store, year, month)
    return compute_period(snapshot, target_prefix=config.target_prefix, period=f"{year}-{month:02d}")


@router.get(
    "/reports/{year}/{month}/excel",
    responses={
        200: {"content": {XLSX_MEDIA_TYPE: {}}, "description": "Binary Excel workbook"},
        404: {"description": "No snapshot stored for the period"},
    },
)
def export_report(
    year: Year,
    month: Month,
    store: SnapshotStore = Depends(get_store),
    config: ConfigManager = Depends(get_config),
) -> Response:
    snapshot = _load(store, year, month)
    content = export_period_report(snapshot, target_prefix=config.target_prefix)
    return _xlsx(content, f"Commission_Report_{year}_{month}.xlsx")
