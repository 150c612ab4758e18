"""Driver location tracking — command and handler."""

from protean import handle
from protean.fields import Float, Identifier, String
from protean.utils.globals import current_domain

from bakery.delivery.delivery import Delivery
from bakery.delivery.scheduling import delivery_for
from bakery.domain import bakery


@bakery.command(part_of="Delivery")
class UpdateDriverLocation:
    delivery_id = Identifier(required=True)
    driver_id = String(required=True, max_length=100)
    latitude = Float(required=True, min_value=-90.0, max_value=90.0)
    longitude = Float(required=True, min_value=-180.0, max_value=180.0)
    accuracy = Float(default=0.0, min_value=0.0)


@bakery.command_handler(part_of=Delivery)
class TrackingHandler:
    @handle(UpdateDriverLocation)
    def update_location(self, command):
        delivery = delivery_for(command.delivery_id)
        delivery.update_location(
            driver_id=command.driver_id,
            latitude=command.latitude,
            longitude=command.longitude,
            accuracy=command.accuracy,
        )
        current_domain.repository_for(Delivery).add(delivery)
        return delivery
