from core.fingerprint import fingerprint, ids_key, metadata_key


class TestFingerprint:
    def test_stable(self):
        url = "https://www.airbnb.co.uk/s/Portree/homes?adults=2"
        assert fingerprint(url) == fingerprint(url)

    def test_sha256_hex(self):
        assert fingerprint("") == (
            "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
        )

    def test_no_normalization(self):
        a = "https://www.airbnb.co.uk/s/Portree/homes?adults=2&children=1"
        b = "https://www.airbnb.co.uk/s/Portree/homes?children=1&adults=2"
        assert fingerprint(a) != fingerprint(b)

    def test_keys_share_prefix_and_fingerprint(self):
        url = "https://www.airbnb.co.uk/s/Portree"
        digest = fingerprint(url)
        assert ids_key(url) == f"search:{digest}"
        assert metadata_key(url) == f"search:{digest}:first_run"
        assert ids_key(url, prefix="test") == f"test:{digest}"
