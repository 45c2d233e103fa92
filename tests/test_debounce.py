from facewatch.session.debounce import PresenceDebouncer


def _run(sequence):
    debouncer = PresenceDebouncer()
    announced = []
    for idx, names in enumerate(sequence):
        announced.extend(debouncer.update(names, idx))
    return announced


def test_continuous_presence_announces_once():
    assert _run([["Ann"], ["Ann"], ["Ann"]]) == ["Ann"]


def test_gap_re_announces():
    assert _run([["Ann"], [], ["Ann"]]) == ["Ann", "Ann"]


def test_identities_are_tracked_independently():
    sequence = [["Ann", "Bob"], ["Bob", "Ann"], ["Ann"], ["Ann", "Bob"]]
    assert _run(sequence) == ["Ann", "Bob", "Bob"]


def test_duplicate_faces_of_one_identity_announce_once():
    assert _run([["Ann", "Ann"]]) == ["Ann"]


def test_last_announced_and_reset():
    debouncer = PresenceDebouncer()
    debouncer.update(["Ann", "Bob"], 1)
    assert debouncer.last_announced == "Bob"
    assert debouncer.present == ["Ann", "Bob"]
    debouncer.update([], 2)
    assert debouncer.last_announced is None
    debouncer.update(["Ann"], 3)
    debouncer.reset()
    assert debouncer.present == []
    assert debouncer.update(["Ann"], 4) == ["Ann"]
