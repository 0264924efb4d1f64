"""
Concurrent handlers must apply each transition and its side effects once.
"""

import threading

from movieclub.core.schema import Phase, ProposalStatus
from movieclub.core.vetting import submit_vetting
from movieclub.core.voting import submit_vote

from conftest import DAY, NOW

MEMBERS = 8


def run_concurrently(targets):
    """Start every callable at the same moment and collect raised errors."""
    barrier = threading.Barrier(len(targets))
    errors = []

    def wrap(target):
        def run():
            barrier.wait()
            try:
                target()
            except Exception as e:
                errors.append(e)
        return run

    threads = [threading.Thread(target=wrap(t)) for t in targets]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)
    return errors


class TestConcurrentQuorum:

    def test_vetting_quorum_reached_once(self, make_member, make_proposal, set_state, fetch):
        members = [make_member() for _ in range(MEMBERS)]
        vetting = make_proposal(members[0].id, status=ProposalStatus.VETTING, week_number=1,
                                vetting_start_date=NOW - DAY)
        set_state(Phase.ACTIVE, 1)

        errors = run_concurrently([
            lambda m=m: submit_vetting(m.id, seen=False) for m in members
        ])

        assert errors == []
        assert fetch.count("vetting_responses") == MEMBERS
        assert fetch.proposal(vetting.id).status == ProposalStatus.WATCHING

    def test_duplicate_answers_race(self, make_member, make_proposal, set_state, fetch):
        alice = make_member("alice")
        make_member("bob")
        make_proposal(alice.id, status=ProposalStatus.VETTING, week_number=1, vetting_start_date=NOW)
        set_state(Phase.ACTIVE, 1)

        errors = run_concurrently([lambda: submit_vetting(alice.id, seen=False)] * 6)

        assert errors == []
        assert fetch.count("vetting_responses") == 1

    def test_completion_and_promotion_happen_once(self, make_member, make_proposal, set_state,
                                                  add_vetting, fetch, notifier):
        members = [make_member() for _ in range(MEMBERS)]
        watching = make_proposal(members[0].id, status=ProposalStatus.WATCHING, week_number=1,
                                 vetting_start_date=NOW - DAY)
        for week, member in enumerate(members[1:], start=2):
            make_proposal(member.id, week_number=week, vetting_start_date=NOW + (week - 1) * 7 * DAY)
        add_vetting(watching.id, *[m.id for m in members])
        set_state(Phase.ACTIVE, 1)

        errors = run_concurrently([
            lambda m=m, i=i: submit_vote(m.id, watching.id, i % 11, now=NOW)
            for i, m in enumerate(members)
        ])

        assert errors == []
        assert fetch.proposal(watching.id).status == ProposalStatus.COMPLETED
        assert len(notifier.of_kind("item_completed")) == 1
        assert len(notifier.of_kind("new_vetting_item")) == 1
        assert len(fetch.proposals(ProposalStatus.VETTING)) == 1
        assert fetch.proposals(ProposalStatus.VETTING)[0].week_number == 2
