import unittest

from stockpro.client.connectivity import CHECKING, OFFLINE, ONLINE, ConnectivityState


class ConnectivityStateTest(unittest.TestCase):
    def test_starts_checking(self) -> None:
        state = ConnectivityState()
        self.assertEqual(state.current(), CHECKING)
        self.assertFalse(state.is_online)
        self.assertFalse(state.is_offline)

    def test_listeners_fire_only_on_transitions(self) -> None:
        state = ConnectivityState()
        seen = []
        state.on_change(lambda previous, current: seen.append((previous, current)))

        self.assertTrue(state.set(ONLINE))
        self.assertFalse(state.set(ONLINE))
        self.assertTrue(state.set(OFFLINE))
        self.assertTrue(state.set(ONLINE))

        self.assertEqual(seen, [(CHECKING, ONLINE), (ONLINE, OFFLINE), (OFFLINE, ONLINE)])

    def test_unsubscribe(self) -> None:
        state = ConnectivityState(initial=OFFLINE)
        seen = []
        unsubscribe = state.on_change(lambda previous, current: seen.append(current))
        unsubscribe()
        unsubscribe()
        state.set(ONLINE)
        self.assertEqual(seen, [])

    def test_unknown_state_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            ConnectivityState(initial="maybe")
        with self.assertRaises(ValueError):
            ConnectivityState().set("maybe")


if __name__ == "__main__":
    unittest.main()
