"""
Repair Receipts Examples
Demonstrates configuring the engine and issuing a receipt end to end
"""

import logging

from repair_receipts import (
    ConfigLoader,
    ConfigValidator,
    DeviceCategory,
    InMemoryCollection,
    NotificationCenter,
    ReceiptConfig,
    ReceiptDocumentRenderer,
    ReceiptStore,
    ReceiptWorkflow,
    TextServiceClient,
)


# =============================================================================
# Example 1: Programmatic Configuration
# =============================================================================

def programmatic_config_example() -> ReceiptConfig:
    """Configure the engine programmatically"""
    loader = ConfigLoader()

    return loader.load(
        env=False,
        config={
            "shop": {
                "name": "iPremium Care",
                "tagline": "Mobile & Laptop Repairs",
                "address_lines": ["12 MG Road", "Bengaluru 560001"],
                "phone": "+91 80 1234 5678",
                "email": "care@ipremium.example",
                "receipt_prefix": "PFX",
                "timezone": "Asia/Kolkata",
            },
            "store": {
                "app_id": "repair-desk",
                # "snapshot" numbers from the live list size instead
                "numbering": "server",
            },
            # Leave api_key empty to run on local fallbacks
            "text_service": {"api_key": ""},
        },
    )


# =============================================================================
# Example 2: File + Environment Configuration
# =============================================================================

def merged_config_example() -> ReceiptConfig:
    """
    Merge configuration from multiple sources
    Priority: programmatic > environment > file

    export RECEIPTS_APP_ID="repair-desk"
    export RECEIPTS_TEXT_API_KEY="your-key"
    """
    loader = ConfigLoader()
    return loader.load(
        file="./config/receipts.json",
        env=True,
        config={"notification_ttl": 6.0},
    )


# =============================================================================
# Example 3: Issuing a Receipt
# =============================================================================

def issue_receipt_example(config: ReceiptConfig) -> None:
    """Fill a draft, submit it and save the document"""
    store = ReceiptStore(InMemoryCollection(), config.store)
    notifications = NotificationCenter(ttl=config.notification_ttl)
    notifications.add_listener(lambda n: print(f"[{n.level.value}] {n.message}"))

    unsubscribe = store.subscribe(
        lambda receipts: print(f"Live list: {[r.receipt_number for r in receipts]}")
    )

    workflow = ReceiptWorkflow(
        store,
        ReceiptDocumentRenderer(config.shop),
        config,
        text_client=TextServiceClient(config.text_service, notify=notifications.warning),
        notifications=notifications,
        link_opener=lambda link: print(f"Messaging link: {link}"),
    )

    try:
        workflow.update_draft(
            customer_name="Asha Rao",
            phone="+91 98765 43210",
            device_category=DeviceCategory.MOBILE,
            imei="356938035643809",
            issue="dead",
            total_amount="1500",
        )
        estimate = workflow.estimate_cost()
        print(f"Estimate: {estimate.cost_estimate} ({estimate.certainty.value}) {estimate.notes}")

        result = workflow.submit(created_by="counter-1", send_message=True)
        if result.document is not None:
            path = result.document.save("./receipts")
            print(f"Saved {path}")
        print(workflow.draft_follow_up(result.receipt))
    finally:
        unsubscribe()
        workflow.close()


# =============================================================================
# Example 4: Configuration Validation
# =============================================================================

def validation_example() -> None:
    """Validate configuration before use"""
    validator = ConfigValidator()

    result = validator.validate({"shop": {"receipt_prefix": "pfx"}})

    if not result.valid:
        print("Configuration validation failed:")
        for error in result.errors:
            print(f"  - {error.field}: {error.message}")


# =============================================================================
# Run Examples
# =============================================================================

if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)

    print("=== Repair Receipts Examples ===\n")

    print("1. Configuration Validation:")
    validation_example()

    print("\n2. Issuing a Receipt:")
    issue_receipt_example(programmatic_config_example())
