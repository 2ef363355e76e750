"""
Order lifecycle orchestration engine.

    datemath       pure service-period arithmetic
    audit          append-only workflow / contract logs
    state_machine  workflow status transitions
    dispatcher     best-effort notifications after commit
    approval       submission approval → workflow batch
    renewal        service-period extension, payments, D-day report
    contracts      contract approval / rejection
"""
