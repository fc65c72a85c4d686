from jobfeed.pipeline.search_key import make_search_key, normalize_location, normalize_role, parse_search_key


class TestNormalizeRole:
    def test_strips_seniority(self):
        assert normalize_role("Senior Backend Developer") == "backend dev"
        assert normalize_role("Sr. Python Engineer") == "python dev"
        assert normalize_role("Junior programmer") == "dev"

    def test_collapses_role_words(self):
        assert normalize_role("backend engineer") == normalize_role("Backend Developer")

    def test_leaves_other_words_alone(self):
        assert normalize_role("  Data   Analyst ") == "data analyst"


class TestNormalizeLocation:
    def test_strips_country(self):
        assert normalize_location("Toronto, ON, Canada") == "toronto, on"
        assert normalize_location("Vancouver, BC, CA") == "vancouver, bc"

    def test_does_not_touch_words_containing_ca(self):
        assert normalize_location("Calgary, AB") == "calgary, ab"


class TestSearchKey:
    def test_key_format(self):
        sk = make_search_key("Senior Backend Developer", "Toronto, ON, Canada")
        assert sk.key == "backend dev|toronto, on"
        assert str(sk) == sk.key
        assert sk.search_term == "Senior Backend Developer"
        assert sk.location_display == "Toronto, ON, Canada"

    def test_parse_is_stable(self):
        sk = make_search_key("Senior Backend Developer", "Toronto, ON, Canada")
        assert parse_search_key(sk.key).key == sk.key
