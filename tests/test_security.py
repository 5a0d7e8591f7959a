"""Unit tests for password hashing: hash, verify, and the unknown-account dummy check."""

import unittest

from app.core.security import (
    dummy_password_hash,
    hash_password,
    verify_against_dummy,
    verify_password,
)

# Lowest cost bcrypt accepts; keeps the suite fast.
ROUNDS = 4


class TestHashPassword(unittest.TestCase):
    def test_hash_is_not_plaintext_and_verifies(self) -> None:
        hashed = hash_password("Passw0rd!", rounds=ROUNDS)
        self.assertNotEqual(hashed, "Passw0rd!")
        self.assertTrue(hashed.startswith("$2"))
        self.assertTrue(verify_password("Passw0rd!", hashed))

    def test_same_password_gets_different_salts(self) -> None:
        first = hash_password("Passw0rd!", rounds=ROUNDS)
        second = hash_password("Passw0rd!", rounds=ROUNDS)
        self.assertNotEqual(first, second)
        self.assertTrue(verify_password("Passw0rd!", first))
        self.assertTrue(verify_password("Passw0rd!", second))

    def test_cost_is_encoded_in_hash(self) -> None:
        hashed = hash_password("Passw0rd!", rounds=ROUNDS)
        self.assertEqual(hashed.split("$")[2], "04")


class TestVerifyPassword(unittest.TestCase):
    def test_wrong_password_is_false(self) -> None:
        hashed = hash_password("Passw0rd!", rounds=ROUNDS)
        self.assertFalse(verify_password("Passw0rd!x", hashed))

    def test_malformed_hash_is_false(self) -> None:
        self.assertFalse(verify_password("Passw0rd!", "not-a-bcrypt-hash"))
        self.assertFalse(verify_password("Passw0rd!", ""))

    def test_non_string_hash_is_false(self) -> None:
        self.assertFalse(verify_password("Passw0rd!", None))  # type: ignore[arg-type]


class TestDummyVerification(unittest.TestCase):
    def test_always_false(self) -> None:
        self.assertFalse(verify_against_dummy("anything", rounds=ROUNDS))
        self.assertFalse(verify_against_dummy("homeledger-dummy-password", rounds=ROUNDS))

    def test_dummy_hash_is_cached_per_cost(self) -> None:
        self.assertEqual(dummy_password_hash(ROUNDS), dummy_password_hash(ROUNDS))
        self.assertEqual(dummy_password_hash(ROUNDS).split("$")[2], "04")
