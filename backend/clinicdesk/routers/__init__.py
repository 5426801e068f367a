from . import drug_orders, drugs, feedback, lab_results, patients, payments, reports, sales, walk_in_services

ALL_ROUTERS = [
    sales.router,
    drugs.router,
    patients.router,
    payments.router,
    drug_orders.router,
    walk_in_services.router,
    lab_results.router,
    reports.router,
    feedback.router,
]
