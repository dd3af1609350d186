import pytest

from models import ContactSource
from clients.contact_extractor import (
    ContactExtractor, ExtractionContext, clean_profile_url, PLACEHOLDER_COMPANY
)


@pytest.fixture
def extractor(email_checker):
    return ContactExtractor(email_checker)


def test_name_title_company_phrase(extractor):
    contacts = extractor.extract("Jane Doe, CEO of Acme Corp", ExtractionContext())

    assert len(contacts) == 1
    jane = contacts[0]
    assert (jane.first_name, jane.last_name) == ("Jane", "Doe")
    assert jane.position == "CEO"
    assert jane.company == "Acme Corp"
    assert jane.email == "jane.doe@acme.com"
    assert jane.email_inferred is True
    assert len(jane.alternative_emails) == 7
    assert "jane.doe@acme.com" not in jane.alternative_emails
    assert 70 <= jane.confidence <= 95
    assert jane.source == ContactSource.COMPANY_SITE
    assert jane.tags == ["Real Contact", "Website"]


def test_company_phrase_stops_at_sentence(extractor):
    contacts = extractor.extract("Jane Doe, CEO of Acme Corp. She joined in 2019.", ExtractionContext())
    assert contacts[0].company == "Acme Corp"


def test_title_before_name(extractor):
    ctx = ExtractionContext(company="Initech")
    contacts = extractor.extract("Meet our CTO John Smith.", ctx)

    assert len(contacts) == 1
    assert contacts[0].full_name == "John Smith"
    assert contacts[0].position == "CTO"
    assert contacts[0].company == "Initech"
    assert contacts[0].email == "john.smith@initech.com"


def test_multiple_people_in_text_order(extractor):
    text = "Jane Doe, CEO\nJohn Smith, CTO\nJane Doe, Founder"

    contacts = extractor.extract(text, ExtractionContext(company="Acme"))

    assert [c.full_name for c in contacts] == ["Jane Doe", "John Smith"]
    assert contacts[0].position == "CEO"


def test_title_list_keeps_each_title_with_its_person(extractor):
    contacts = extractor.extract("Leadership: CEO John Smith, CTO Mary Jones", ExtractionContext(company="Acme"))

    assert [(c.full_name, c.position) for c in contacts] == [("John Smith", "CEO"), ("Mary Jones", "CTO")]


def test_name_title_list_keeps_each_title_with_its_person(extractor):
    contacts = extractor.extract("John Smith CEO Mary Jones CTO", ExtractionContext(company="Acme"))

    assert [(c.full_name, c.position) for c in contacts] == [("John Smith", "CEO"), ("Mary Jones", "CTO")]


def test_place_names_are_not_people(extractor):
    contacts = extractor.extract("New York Director Jane Doe", ExtractionContext(company="Acme"))
    assert [(c.full_name, c.position) for c in contacts] == [("Jane Doe", "Director")]

    ctx = ExtractionContext(company="Acme", location="Palo Alto, CA")
    contacts = extractor.extract("Offices in Palo Alto, Director Raj Patel", ctx)
    assert [c.full_name for c in contacts] == ["Raj Patel"]


def test_accented_names(extractor):
    contacts = extractor.extract("José Núñez, CEO of Acme Corp", ExtractionContext())

    assert contacts[0].full_name == "José Núñez"
    assert contacts[0].position == "CEO"
    assert contacts[0].email == "jose.nunez@acme.com"


def test_department_is_not_a_company(extractor):
    contacts = extractor.extract("Tom Baker, VP of Sales", ExtractionContext())

    assert contacts[0].position == "VP"
    assert contacts[0].company == PLACEHOLDER_COMPANY


def test_observed_email_beats_guess(extractor):
    text = "Jane Doe, CEO of Acme Corp\nEmail: jane@acme.com, info@acme.com"

    contacts = extractor.extract(text, ExtractionContext())

    assert len(contacts) == 1
    assert contacts[0].email == "jane@acme.com"
    assert contacts[0].email_inferred is False
    assert contacts[0].alternative_emails == []


def test_email_only_records(extractor):
    text = (
        "Write to mary.jones@globex.com, bob@globex.com, carl@globex.com "
        "or dan@globex.com. Test account: jane@example.com"
    )
    ctx = ExtractionContext(url="https://globex.com/contact", industry="Logistics")

    contacts = extractor.extract(text, ctx)

    assert len(contacts) == 3
    assert [c.email for c in contacts] == ["mary.jones@globex.com", "bob@globex.com", "carl@globex.com"]
    assert contacts[0].full_name == "Mary Jones"
    assert all(c.confidence == 60 for c in contacts)
    assert all(c.position == "Professional" for c in contacts)
    assert all(c.company == "Globex" for c in contacts)
    assert contacts[0].website == "https://globex.com/contact"


def test_empty_text_yields_nothing(extractor):
    assert extractor.extract("", ExtractionContext()) == []
    assert extractor.extract("   \n ", ExtractionContext(url="https://acme.com")) == []


def test_profile_url_slug_fallback(extractor):
    ctx = ExtractionContext(source=ContactSource.PROFESSIONAL_NETWORK)

    contacts = extractor.extract_from_profile_url(
        "https://www.linkedin.com/in/jane-doe-4a1b2c?trk=public_profile", "", ctx
    )

    assert len(contacts) == 1
    jane = contacts[0]
    assert jane.full_name == "Jane Doe"
    assert 70 <= jane.confidence <= 75
    assert jane.company == PLACEHOLDER_COMPANY
    assert jane.linkedin_url == "https://www.linkedin.com/in/jane-doe-4a1b2c"
    assert jane.website is None
    assert jane.tags == ["Real Contact", "LinkedIn"]


def test_profile_snippet_company_and_title(extractor):
    ctx = ExtractionContext(source=ContactSource.PROFESSIONAL_NETWORK)

    contacts = extractor.extract_from_profile_url(
        "https://linkedin.com/in/maria-lopez",
        "Director of Engineering at Globex. Experienced engineering leader.",
        ctx
    )

    assert contacts[0].full_name == "Maria Lopez"
    assert contacts[0].company == "Globex"
    assert contacts[0].position == "Director"
    assert contacts[0].email == "maria.lopez@globex.com"


def test_profile_page_title_as_company(extractor):
    ctx = ExtractionContext(source=ContactSource.PROFESSIONAL_NETWORK, page_title="Initech")

    contacts = extractor.extract_from_profile_url(
        "https://linkedin.com/in/peter-gibbons", "Experienced leader.", ctx
    )

    assert contacts[0].company == "Initech"


def test_non_profile_urls_are_rejected(extractor):
    ctx = ExtractionContext(source=ContactSource.PROFESSIONAL_NETWORK)
    assert extractor.extract_from_profile_url("https://linkedin.com/company/acme", "Jane Doe, CEO", ctx) == []
    assert clean_profile_url("https://linkedin.com/in/dir/jane") is None
    assert clean_profile_url("https://acme.com/in/jane") is None
    assert clean_profile_url("https://linkedin.com/in/jane-doe/#about") == "https://linkedin.com/in/jane-doe"


TEAM_PAGE = """
<html>
<head><title>Acme Robotics | Home</title></head>
<body>
  <nav><a href="/">Home</a> <a href="/about">About</a></nav>
  <script>var featured = "Evil Person, CEO";</script>
  <div class="team-grid">
    <div class="card"><h3>Jane Doe</h3><p>CEO</p></div>
    <div class="card"><h3>Tom Baker</h3><p>VP of Sales</p></div>
  </div>
  <footer>Contact us anytime.</footer>
</body>
</html>
"""


def test_extract_from_html_team_cards(extractor):
    ctx = ExtractionContext(url="https://acme-robotics.com/team", industry="Robotics")

    contacts = extractor.extract_from_html(TEAM_PAGE, ctx)

    assert [c.full_name for c in contacts] == ["Jane Doe", "Tom Baker"]
    assert ctx.page_title == "Acme Robotics | Home"
    assert all(c.company == "Acme Robotics" for c in contacts)
    assert contacts[0].email == "jane.doe@acme-robotics.com"
    assert contacts[1].position == "VP"
    assert contacts[0].website == "https://acme-robotics.com/team"
    assert contacts[0].summary == "CEO at Acme Robotics in Robotics."


def test_extract_from_html_domain_fallback_company(extractor):
    html = "<html><body><p>Founder Lisa Park runs the shop.</p></body></html>"
    ctx = ExtractionContext(url="https://www.park-bakery.com")

    contacts = extractor.extract_from_html(html, ctx)

    assert contacts[0].full_name == "Lisa Park"
    assert contacts[0].company == "Park Bakery"
