"""Tests for team member extraction."""

from app.extractors.team import extract_team, is_person_name, linkedin_profile_url

TEAM_URL = "https://www.hotel-lumiere.fr/equipe"


# --- Name heuristics ---


def test_is_person_name():
    assert is_person_name("Jane Doe")
    assert is_person_name("Jean-Pierre DUPONT")
    assert is_person_name("Anne de Villiers")
    assert not is_person_name("Sales & Marketing")
    assert not is_person_name("Our Team")
    assert not is_person_name("jane doe")
    assert not is_person_name("Sophie")
    assert is_person_name("Sophie", min_words=1)


def test_linkedin_profile_url_normalized():
    assert linkedin_profile_url("https://fr.linkedin.com/in/jane-doe/?trk=x") == "https://linkedin.com/in/jane-doe"
    assert linkedin_profile_url("https://www.linkedin.com/company/acme") is None
    assert linkedin_profile_url(None) is None


# --- Cards ---


def test_card_with_linkedin_and_role():
    html = """
    <div class="team-member">
      <h3>Jane Doe, CEO</h3>
      <a href="https://www.linkedin.com/in/janedoe/">LinkedIn</a>
    </div>
    """
    team = extract_team(html, TEAM_URL)

    assert len(team) == 1
    member = team[0]
    assert member.name == "Jane Doe"
    assert member.role == "CEO"
    assert member.linkedin == "https://linkedin.com/in/janedoe"
    assert member.sourceUrl == TEAM_URL
    assert "has_linkedin" in member.signals
    assert "has_role" in member.signals


def test_section_title_is_not_a_member():
    html = """
    <div class="team-member">
      <img src="/img/sales.jpg">
      <h3>Sales &amp; Marketing</h3>
    </div>
    <div class="team-member">
      <img src="/img/team.jpg">
      <h3>Our Team</h3>
    </div>
    """
    assert extract_team(html, TEAM_URL) == []


def test_single_first_name_needs_email_or_linkedin():
    with_email = """
    <div class="team-member">
      <p>Sophie</p>
      <a href="mailto:Sophie@Hotel-Lumiere.fr">Mail</a>
    </div>
    """
    team = extract_team(with_email, TEAM_URL)
    assert [m.name for m in team] == ["Sophie"]
    assert team[0].email == "sophie@hotel-lumiere.fr"
    assert team[0].signals == ["has_email"]

    image_only = '<div class="team-member"><img src="/s.jpg"><p>Sophie</p></div>'
    assert extract_team(image_only, TEAM_URL) == []


def test_name_without_signal_is_dropped():
    html = '<div class="team-member"><p>Jane Doe</p></div>'
    assert extract_team(html, TEAM_URL) == []


def test_fallback_container_with_image():
    html = """
    <ul>
      <li><img src="/img/marie.jpg" alt=""><span>Marie Curie</span><span>Directrice</span></li>
    </ul>
    """
    team = extract_team(html, TEAM_URL)

    assert len(team) == 1
    assert team[0].name == "Marie Curie"
    assert team[0].role == "Directrice"
    assert team[0].signals == ["has_image", "has_role"]


def test_duplicate_cards_collapse_by_name():
    card = '<div class="team-member"><img src="/j.jpg"><h3>Jane Doe</h3></div>'
    team = extract_team(card + card, TEAM_URL)
    assert len(team) == 1


def test_team_wrapper_with_several_members():
    html = """
    <section class="our-team">
      <h2>Our Team</h2>
      <div><h3>Jane Doe</h3><p>CEO</p></div>
      <div><h3>John Smith</h3><p>CTO</p></div>
    </section>
    """
    team = extract_team(html, TEAM_URL)

    assert [(m.name, m.role) for m in team] == [("Jane Doe", "CEO"), ("John Smith", "CTO")]


def test_team_wrapper_with_flat_markup():
    html = """
    <div class="team">
      <h3>Jane Doe</h3>
      <p>General Manager</p>
      <h3>John Smith</h3>
      <p>Head of Sales</p>
      <a href="https://www.linkedin.com/in/johnsmith/">LinkedIn</a>
    </div>
    """
    team = extract_team(html, TEAM_URL)

    assert [m.name for m in team] == ["Jane Doe", "John Smith"]
    assert team[0].role == "General Manager"
    assert team[0].linkedin is None
    assert team[1].linkedin == "https://linkedin.com/in/johnsmith"


# --- Publication director ---


def test_publication_director_from_legal_notice():
    html = """
    <body>
      <p>Directeur de la publication : Jean Dupont</p>
      <p>Email : jean.dupont@hotel-lumiere.fr</p>
      <div class="team-member"><img src="/j.jpg"><h3>Jane Doe</h3></div>
    </body>
    """
    team = extract_team(html, "https://www.hotel-lumiere.fr/mentions-legales")

    assert len(team) == 1
    director = team[0]
    assert director.name == "Jean Dupont"
    assert director.role == "Directeur de la publication"
    assert director.email == "jean.dupont@hotel-lumiere.fr"
    assert director.signals == ["legal_notice", "has_role", "has_email"]


def test_publication_director_with_company_name_ignored():
    html = "<p>Directeur de la publication : Hotel Lumiere</p>"
    assert extract_team(html, "https://www.hotel-lumiere.fr/mentions-legales") == []
