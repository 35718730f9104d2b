"""HTTP tests for /api/analyses: history, recent, stats, grain type filter, compare, reports and delete."""

import unittest
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, patch

import anyio
from sqlite_db import ApiTestCase, add_analysis

from app.api.routes import analyses as analyses_routes
from app.services.report_renderer import ReportRenderError


class AnalysesApiTestCase(ApiTestCase):
    def setUp(self) -> None:
        super().setUp()
        session = self.register(email="a@x.com")
        self.user_id = session["user"]["id"]
        self.headers = self.bearer(session["token"])
        self.t0 = datetime(2025, 3, 1, 9, 0, tzinfo=UTC)

    def _add(self, minutes: int = 0, **kwargs):
        with self.SessionLocal() as db:
            analysis = add_analysis(
                db, self.user_id, created_at=self.t0 + timedelta(minutes=minutes), **kwargs
            )
            return analysis.id

    def _other_user_analysis(self) -> str:
        other = self.register(email="b@x.com")
        with self.SessionLocal() as db:
            return add_analysis(db, other["user"]["id"]).id


class TestListing(AnalysesApiTestCase):
    def test_requires_auth(self) -> None:
        response = self.client.get("/api/analyses")
        self.assertEqual(response.status_code, 401)

    def test_history_newest_first(self) -> None:
        first = self._add(0)
        second = self._add(5)
        self._other_user_analysis()

        response = self.client.get("/api/analyses", headers=self.headers)
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual([a["id"] for a in body["data"]], [second, first])
        self.assertEqual(body["pagination"]["limit"], 50)
        self.assertEqual(body["pagination"]["total"], 2)
        item = body["data"][0]
        for key in ("grainType", "date", "purityPercentage", "totalGrains", "defectiveGrains"):
            self.assertIn(key, item)

    def test_history_limit_bounds(self) -> None:
        self.assertEqual(
            self.client.get("/api/analyses?limit=101", headers=self.headers).status_code, 400
        )
        self.assertEqual(
            self.client.get("/api/analyses?limit=0", headers=self.headers).status_code, 400
        )
        self.assertEqual(
            self.client.get("/api/analyses?limit=abc", headers=self.headers).status_code, 400
        )

    def test_recent(self) -> None:
        for i in range(3):
            self._add(i)
        response = self.client.get("/api/analyses/recent?limit=2", headers=self.headers)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.json()["data"]), 2)
        self.assertEqual(
            self.client.get("/api/analyses/recent?limit=21", headers=self.headers).status_code,
            400,
        )

    def test_by_grain_type(self) -> None:
        soja = self._add(0, grain_type="Soja")
        self._add(1, grain_type="Milho")
        response = self.client.get("/api/analyses/grain-type/soja", headers=self.headers)
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual([a["id"] for a in body["data"]], [soja])
        self.assertEqual(body["pagination"]["grainType"], "soja")
        self.assertEqual(body["pagination"]["limit"], 20)

    def test_stats(self) -> None:
        self._add(0, grain_type="Soja", purity=90.0)
        self._add(1, grain_type="Milho", purity=80.0)
        response = self.client.get("/api/analyses/stats", headers=self.headers)
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["totalAnalyses"], 2)
        self.assertEqual(body["averagePurity"], 85.0)
        self.assertEqual(body["bestPurity"], 90.0)
        self.assertEqual(body["worstPurity"], 80.0)
        self.assertEqual(len(body["grainTypeBreakdown"]), 2)


class TestDetailAndDelete(AnalysesApiTestCase):
    def test_get_own_analysis(self) -> None:
        analysis_id = self._add(0, image_url="/uploads/images/a.png")
        response = self.client.get(f"/api/analyses/{analysis_id}", headers=self.headers)
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["id"], analysis_id)
        self.assertEqual(body["userId"], self.user_id)
        self.assertIn("foreignMatter", body["defectsBreakdown"])
        self.assertEqual(body["imageUrl"], "/uploads/images/a.png")

    def test_other_users_analysis_is_not_found(self) -> None:
        theirs = self._other_user_analysis()
        response = self.client.get(f"/api/analyses/{theirs}", headers=self.headers)
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["code"], "NOT_FOUND")

    def test_delete(self) -> None:
        analysis_id = self._add(0)
        response = self.client.delete(f"/api/analyses/{analysis_id}", headers=self.headers)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            self.client.get(f"/api/analyses/{analysis_id}", headers=self.headers).status_code,
            404,
        )
        self.assertEqual(
            self.client.delete(f"/api/analyses/{analysis_id}", headers=self.headers).status_code,
            404,
        )


class TestCompare(AnalysesApiTestCase):
    def test_compare_two(self) -> None:
        a = self._add(0, purity=90.0)
        b = self._add(1, purity=80.0)
        response = self.client.post(
            "/api/analyses/compare", headers=self.headers, json={"analysisIds": [a, b]}
        )
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual([c["analysisId"] for c in body["comparedAnalyses"]], [a, b])
        self.assertEqual(body["comparisonMetrics"]["averagePurity"], 85.0)
        self.assertEqual(body["comparisonMetrics"]["bestPurity"], 90.0)
        self.assertEqual(body["comparisonMetrics"]["worstPurity"], 80.0)

    def test_needs_between_two_and_ten(self) -> None:
        a = self._add(0)
        too_few = self.client.post(
            "/api/analyses/compare", headers=self.headers, json={"analysisIds": [a]}
        )
        self.assertEqual(too_few.status_code, 400)
        too_many = self.client.post(
            "/api/analyses/compare",
            headers=self.headers,
            json={"analysisIds": [a] + [f"id-{i}" for i in range(10)]},
        )
        self.assertEqual(too_many.status_code, 400)

    def test_duplicate_ids_do_not_count_twice(self) -> None:
        a = self._add(0)
        response = self.client.post(
            "/api/analyses/compare", headers=self.headers, json={"analysisIds": [a, a]}
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["code"], "VALIDATION_ERROR")

    def test_duplicates_collapsed_before_lookup(self) -> None:
        a = self._add(0, purity=90.0)
        b = self._add(1, purity=80.0)
        response = self.client.post(
            "/api/analyses/compare", headers=self.headers, json={"analysisIds": [a, b, a]}
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            [c["analysisId"] for c in response.json()["comparedAnalyses"]], [a, b]
        )

    def test_foreign_id_is_not_found(self) -> None:
        a = self._add(0)
        theirs = self._other_user_analysis()
        response = self.client.post(
            "/api/analyses/compare", headers=self.headers, json={"analysisIds": [a, theirs]}
        )
        self.assertEqual(response.status_code, 404)


class TestReports(AnalysesApiTestCase):
    @patch("app.api.routes.analyses.render_report_pdf", new_callable=AsyncMock)
    def test_report_is_attachment(self, render: AsyncMock) -> None:
        render.return_value = b"%PDF-1.4 test"
        analysis_id = self._add(0)
        response = self.client.get(f"/api/analyses/{analysis_id}/report", headers=self.headers)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.content, b"%PDF-1.4 test")
        self.assertEqual(response.headers["content-type"], "application/pdf")
        self.assertEqual(
            response.headers["content-disposition"],
            f'attachment; filename="analysis-report-{analysis_id}.pdf"',
        )
        report = render.await_args.args[0]
        self.assertEqual(report.analysis_id, analysis_id)

    @patch("app.api.routes.analyses.render_report_pdf", new_callable=AsyncMock)
    def test_export_is_inline(self, render: AsyncMock) -> None:
        render.return_value = b"%PDF-1.4 test"
        analysis_id = self._add(0)
        response = self.client.get(f"/api/analyses/{analysis_id}/export", headers=self.headers)
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.headers["content-disposition"].startswith("inline;"))

    @patch("app.api.routes.analyses.render_report_pdf", new_callable=AsyncMock)
    def test_render_failure_is_500(self, render: AsyncMock) -> None:
        render.side_effect = ReportRenderError("Unable to render the PDF report.")
        analysis_id = self._add(0)
        response = self.client.get(f"/api/analyses/{analysis_id}/report", headers=self.headers)
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json()["code"], "REPORT_RENDER_ERROR")

    @patch("app.api.routes.analyses.render_report_pdf", new_callable=AsyncMock)
    def test_report_lookup_runs_in_worker_thread(self, render: AsyncMock) -> None:
        render.return_value = b"%PDF-1.4 test"
        analysis_id = self._add(0)
        with patch(
            "app.api.routes.analyses.anyio.to_thread.run_sync", wraps=anyio.to_thread.run_sync
        ) as run_sync:
            response = self.client.get(
                f"/api/analyses/{analysis_id}/report", headers=self.headers
            )
        self.assertEqual(response.status_code, 200)
        offloaded = [c.args[0] for c in run_sync.call_args_list if c.args]
        self.assertIn(analyses_routes._load, offloaded)

    @patch("app.api.routes.analyses.render_report_pdf", new_callable=AsyncMock)
    def test_report_for_missing_analysis_is_404(self, render: AsyncMock) -> None:
        response = self.client.get("/api/analyses/missing/report", headers=self.headers)
        self.assertEqual(response.status_code, 404)
        render.assert_not_awaited()


if __name__ == "__main__":
    unittest.main()
