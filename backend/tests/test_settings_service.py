import unittest

from backspace import create_app
from backspace.extensions import db
from backspace.models import AppSetting
from backspace.services import settings_service
from backspace.services.settings_service import (
    DEFAULT_SETTINGS,
    BillingSettings,
    SettingsValidationError,
)


class SettingsServiceTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.app = create_app({
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
            "SQLALCHEMY_TRACK_MODIFICATIONS": False,
        })
        cls.ctx = cls.app.app_context()
        cls.ctx.push()
        db.create_all()

    @classmethod
    def tearDownClass(cls):
        db.session.remove()
        db.drop_all()
        cls.ctx.pop()

    def setUp(self):
        db.session.query(AppSetting).delete()
        db.session.commit()

    def test_defaults_when_nothing_stored(self):
        settings = settings_service.get_settings()
        self.assertEqual(settings.to_dict(), DEFAULT_SETTINGS)
        self.assertIsNone(settings.debt_limit)
        self.assertFalse(settings.discount.enabled)

    def test_nested_patch_keeps_sibling_keys(self):
        settings_service.update_settings({"tax": {"enabled": True, "rate": 14}})
        settings = settings_service.update_settings({"tax": {"enabled": False}})

        self.assertFalse(settings.tax.enabled)
        self.assertEqual(settings.tax.rate, 14)
        self.assertEqual(db.session.query(AppSetting).count(), 1)

    def test_settings_round_trip_through_store(self):
        settings_service.update_settings({
            "discount": {"enabled": True, "value": 10, "label": "Students"},
            "invoice_due_days": 7,
            "debt_limit": 50000,
        })
        db.session.expire_all()

        settings = settings_service.get_settings()
        self.assertEqual(settings.discount.label, "Students")
        self.assertEqual(settings.invoice_due_days, 7)
        self.assertEqual(settings.debt_limit, 50000)

    def test_rejects_invalid_values(self):
        bad_patches = [
            {"tax": {"rate": 101}},
            {"tax": {"enabled": "yes"}},
            {"discount": {"value": -1}},
            {"discount": {"value": 12.5}},
            {"discount": {"enabled": True, "value": 10, "label": 5}},
            {"discount": {"label": ["Students"]}},
            {"invoice_due_days": -3},
            {"debt_limit": "lots"},
            {"currency": ""},
            {"colour": "blue"},
        ]
        for patch in bad_patches:
            with self.subTest(patch=patch):
                with self.assertRaises(SettingsValidationError):
                    settings_service.update_settings(patch)

        self.assertEqual(db.session.query(AppSetting).count(), 0)

    def test_non_object_payload(self):
        with self.assertRaises(SettingsValidationError):
            settings_service.update_settings(["tax"])

    def test_from_dict_fills_missing_keys(self):
        settings = BillingSettings.from_dict({"currency": "USD"})
        self.assertEqual(settings.currency, "USD")
        self.assertEqual(settings.currency_symbol, "EGP")
        self.assertEqual(settings.invoice_due_days, 0)


if __name__ == "__main__":
    unittest.main()
