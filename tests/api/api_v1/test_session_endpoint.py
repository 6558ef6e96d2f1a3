# tests/api/api_v1/test_session_endpoint.py
import pytest
from fastapi import status
from httpx import ASGITransport, AsyncClient

from core.exceptions import AnalysisRequestError
from main import app
from schemas.analysis import AnalysisResult, RiskLevel, SignalType, TradePlan
from services.analysis_session import AnalysisSession, get_analysis_session

BASE = "/api/v1/session"
LONG_RESULT = AnalysisResult(
    summary="Ruptura alcista confirmada.", signal=SignalType.LONG, risk_level=RiskLevel.MEDIUM,
    plan=TradePlan(entry="61000", sl="60400", tp1="62500", tp2="63800", logic="Retesteo."),
)

@pytest.fixture
def mock_client(mocker):
    client = mocker.MagicMock()
    client.api_key = "test-key"
    client.analyze_chart = mocker.AsyncMock(return_value=LONG_RESULT)
    return client

@pytest.fixture
def session(mock_client):
    return AnalysisSession(client=mock_client, max_images=9)

@pytest.fixture
def client_for(session):
    app.dependency_overrides[get_analysis_session] = lambda: session
    yield lambda: AsyncClient(transport=ASGITransport(app=app), base_url="http://test")
    app.dependency_overrides.clear()

def _pngs(count):
    return [("files", (f"chart{i}.png", b"\x89PNG\r\n", "image/png")) for i in range(count)]

@pytest.mark.asyncio
async def test_initial_state(client_for):
    async with client_for() as client:
        response = await client.get(BASE)
    assert response.json() == {
        "inputText": "", "imageCount": 0, "maxImages": 9, "mediaTypes": [],
        "isAnalyzing": False, "result": None, "error": None,
    }

@pytest.mark.asyncio
async def test_upload_images_and_limit(client_for, session):
    async with client_for() as client:
        first = await client.post(f"{BASE}/images", files=_pngs(8))
        rejected = await client.post(f"{BASE}/images", files=_pngs(2))
        state = await client.get(BASE)

    assert first.json()["imageCount"] == 8
    assert session.state.images[0].startswith("data:image/png;base64,")
    assert rejected.status_code == status.HTTP_400_BAD_REQUEST
    assert state.json()["imageCount"] == 8
    assert "Máximo 9" in state.json()["error"]

@pytest.mark.asyncio
async def test_upload_rejects_non_image_files(client_for, session):
    files = _pngs(1) + [("files", ("notes.txt", b"BTC 4h", "text/plain"))]
    async with client_for() as client:
        response = await client.post(f"{BASE}/images", files=files)

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert "notes.txt" in response.json()["detail"]
    assert session.state.images == []

@pytest.mark.asyncio
async def test_upload_keeps_declared_image_media_type(client_for, session):
    files = [("files", ("chart.webp", b"RIFF", "image/webp"))]
    async with client_for() as client:
        response = await client.post(f"{BASE}/images", files=files)

    assert response.json()["mediaTypes"] == ["image/webp"]
    assert session.state.images[0].startswith("data:image/webp;base64,")

@pytest.mark.asyncio
async def test_remove_and_clear_images(client_for):
    async with client_for() as client:
        await client.post(f"{BASE}/images", files=_pngs(3))
        removed = await client.delete(f"{BASE}/images/1")
        out_of_range = await client.delete(f"{BASE}/images/7")
        cleared = await client.delete(f"{BASE}/images")

    assert removed.json()["imageCount"] == 2
    assert out_of_range.status_code == status.HTTP_404_NOT_FOUND
    assert cleared.json()["imageCount"] == 0

@pytest.mark.asyncio
async def test_analyze_without_input_is_rejected(client_for, mock_client):
    async with client_for() as client:
        response = await client.post(f"{BASE}/analyze")
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    mock_client.analyze_chart.assert_not_awaited()

@pytest.mark.asyncio
async def test_analyze_returns_structured_result(client_for, mock_client):
    async with client_for() as client:
        await client.put(f"{BASE}/input", json={"text": "BTCUSDT 4h"})
        response = await client.post(f"{BASE}/analyze")

    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert body["isAnalyzing"] is False
    assert body["result"]["signal"] == "LONG"
    assert body["result"]["riskLevel"] == "MEDIUM"
    assert body["result"]["plan"]["sl"] == "60400"
    mock_client.analyze_chart.assert_awaited_once_with("BTCUSDT 4h", [])

@pytest.mark.asyncio
async def test_analyze_failure_maps_to_bad_gateway(client_for, mock_client):
    mock_client.analyze_chart.side_effect = AnalysisRequestError("Cuota excedida")
    async with client_for() as client:
        await client.put(f"{BASE}/input", json={"text": "BTCUSDT"})
        response = await client.post(f"{BASE}/analyze")
        state = await client.get(BASE)

    assert response.status_code == status.HTTP_502_BAD_GATEWAY
    assert response.json()["detail"] == "Cuota excedida"
    assert state.json()["error"] == "Cuota excedida"
    assert state.json()["isAnalyzing"] is False

@pytest.mark.asyncio
async def test_analyze_while_in_flight_is_conflict(client_for, session):
    session.set_input("BTCUSDT")
    session.begin_analysis()
    async with client_for() as client:
        response = await client.post(f"{BASE}/analyze")
    assert response.status_code == status.HTTP_409_CONFLICT
