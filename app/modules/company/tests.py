"""
Tests for the issuer profile settings
"""

from app.modules.company.service import DEFAULT_COMPANY_NAME, get_issuer_profile


class TestIssuerProfile:

    def test_fallback_without_settings(self, db_session):
        profile = get_issuer_profile(db_session)
        assert profile.name == DEFAULT_COMPANY_NAME
        assert profile.has_payment_channels is False

    def test_profile_from_settings(self, db_session, company):
        profile = get_issuer_profile(db_session)
        assert profile.name == "Webbstudio AB"
        assert profile.has_payment_channels is True


class TestCompanySettingsEndpoints:

    def test_empty_profile(self, client):
        response = client.get("/settings/company")
        assert response.status_code == 200
        assert response.json()["company_name"] is None

    def test_save_and_update(self, client):
        response = client.put("/settings/company", json={
            "company_name": "Webbstudio AB",
            "email": "hej@webbstudio.se",
            "bankgiro": "123-4567",
        })
        assert response.status_code == 200
        assert response.json()["bankgiro"] == "123-4567"

        client.put("/settings/company", json={"swish": "1234567890"})
        data = client.get("/settings/company").json()
        assert data["company_name"] == "Webbstudio AB"
        assert data["swish"] == "1234567890"

    def test_invalid_email(self, client):
        response = client.put("/settings/company", json={"email": "inte-en-adress"})
        assert response.status_code == 422
