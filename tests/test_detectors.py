import pytest

from pii_audit.detectors import Detector, get_detector, list_detectors, register_detector
from pii_audit.failures import FailureClassification
from pii_audit.scanning import Classifier


@pytest.fixture
def classifier():
    return Classifier()


class TestRegistry:
    def test_builtins_registered(self):
        assert {"private_identifier", "postcode", "date"} <= set(list_detectors())

    def test_unknown_detector(self):
        with pytest.raises(KeyError):
            get_detector("no_such_detector")

    def test_duplicate_name_ignored(self):
        original = get_detector("postcode")

        class Other(Detector):
            name = "postcode"

            def detect(self, text):
                return []

        register_detector(Other())
        assert get_detector("postcode") is original


class TestPrivateIdentifier:
    def test_chi_in_text(self, classifier):
        parts = classifier.validate("Narrative", "hey there,0101010101 excited to see you")
        assert len(parts) == 1
        assert parts[0].word == "0101010101"
        assert parts[0].offset == 10
        assert parts[0].classification == FailureClassification.PRIVATE_IDENTIFIER

    def test_not_a_real_date(self, classifier):
        assert classifier.validate("Narrative", "2902810123 would be a CHI if 1981 had been a leap year") == []

    def test_chi_after_name(self, classifier):
        parts = classifier.validate("Narrative", "David Smith should be referred to with chi 0101010101")
        assert len(parts) == 1
        assert parts[0].offset == 43

    def test_longer_number_is_not_chi(self, classifier):
        assert classifier.validate("Narrative", "010101010199") == []


class TestPostcode:
    @pytest.mark.parametrize("value", ["Patient lives at DD3 7LB", "Patient lives at dd3 7lb", "Patient lives at dd37lb"])
    def test_postcode_in_text(self, classifier, value):
        parts = classifier.validate("Narrative", value)
        assert len(parts) == 1
        assert parts[0].classification == FailureClassification.POSTCODE
        assert parts[0].offset == 17

    def test_caret_separated(self, classifier):
        parts = classifier.validate("PatientAddress", "^DD28DD^")
        assert [p.word for p in parts] == ["DD28DD"]

    def test_caret_becomes_space(self, classifier):
        parts = classifier.validate("PatientAddress", "dd3^7lb")
        assert [p.word for p in parts] == ["dd3 7lb"]

    @pytest.mark.parametrize("value", ["dd3000", "dd3 000"])
    def test_not_postcodes(self, classifier, value):
        assert classifier.validate("PatientAddress", value) == []

    def test_ignore_postcodes(self):
        assert Classifier(ignore_postcodes=True).validate("Narrative", "Patient lives at DD3 7LB") == []


class TestDates:
    def test_symbol_then_month(self, classifier):
        parts = classifier.validate("Narrative", "2015 May")
        assert len(parts) == 1
        assert parts[0].word == "2015 May"
        assert parts[0].classification == FailureClassification.DATE

    def test_month_then_symbol(self, classifier):
        parts = classifier.validate("Narrative", "Seen on May 29th")
        assert [p.word for p in parts] == ["May 29th"]

    def test_iso_date_is_first_part(self, classifier):
        parts = classifier.validate("Narrative", "Patient next appointment is 2015-05-29 5:50")
        assert parts
        first = min(parts, key=lambda p: p.offset)
        assert first.word == "2015-05-29"
        assert first.offset == 28

    @pytest.mark.parametrize(
        "value",
        [
            "We may go there in August some time",
            "I will be 30 in September",
            "2001.1.2",
            "AB13:10",
        ],
    )
    def test_not_a_date(self, classifier, value):
        assert classifier.validate("Narrative", value) == []

    def test_ignore_dates(self):
        assert Classifier(ignore_dates_in_text=True).validate("Narrative", "2015 May") == []
